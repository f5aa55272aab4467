# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import unittest

import astropy.io.fits
import numpy as np

from ccdmisc import (
    ImageDescriptor,
    KeywordType,
    MissingKeywordError,
    PixelType,
    TypeMismatchError,
    UnsupportedShapeError,
    WriteError,
    check_end_card,
    coerce_value,
    is_blank_card,
    make_fixed_card,
    parse_boolean,
    parse_value,
    purge_cards,
    strip_structural_cards,
)
from ccdmisc.tests import blank_card


class KeywordValueTestCase(unittest.TestCase):
    """Tests for parsing and coercing typed keyword values."""

    def test_parse_boolean(self) -> None:
        for text in ("TRUE", "True", "true", "T"):
            self.assertIs(parse_boolean(text), True)
        for text in ("FALSE", "False", "false", "F"):
            self.assertIs(parse_boolean(text), False)
        for text in ("yes", "1", "tRUE", ""):
            with self.assertRaises(TypeMismatchError):
                parse_boolean(text)

    def test_parse_value(self) -> None:
        self.assertEqual(parse_value("hello", KeywordType.STRING), "hello")
        self.assertEqual(parse_value("-12", KeywordType.INT), -12)
        self.assertEqual(parse_value("2.5", KeywordType.DOUBLE), 2.5)
        self.assertEqual(parse_value("1e3", KeywordType.FIXDOUBLE), 1000.0)
        self.assertIs(parse_value("F", KeywordType.BOOLEAN), False)
        with self.assertRaises(TypeMismatchError):
            parse_value("2.5", KeywordType.INT)
        with self.assertRaises(TypeMismatchError):
            parse_value("abc", KeywordType.DOUBLE)

    def test_coerce_value(self) -> None:
        self.assertEqual(coerce_value("A", "text", KeywordType.STRING), "text")
        self.assertEqual(coerce_value("A", True, KeywordType.STRING), "T")
        self.assertEqual(coerce_value("A", 7, KeywordType.STRING), "7")
        self.assertIs(coerce_value("A", False, KeywordType.BOOLEAN), False)
        self.assertEqual(coerce_value("A", 7, KeywordType.INT), 7)
        self.assertEqual(coerce_value("A", -7.9, KeywordType.INT), -7)
        self.assertEqual(coerce_value("A", 7, KeywordType.DOUBLE), 7.0)
        self.assertIsInstance(coerce_value("A", 7, KeywordType.DOUBLE), float)
        mismatches = [
            ("text", KeywordType.INT),
            ("text", KeywordType.DOUBLE),
            ("T", KeywordType.BOOLEAN),
            (1, KeywordType.BOOLEAN),
            (True, KeywordType.INT),
            (True, KeywordType.DOUBLE),
            (astropy.io.fits.card.UNDEFINED, KeywordType.STRING),
        ]
        for value, kw_type in mismatches:
            with self.subTest(value=value, kw_type=kw_type):
                with self.assertRaises(TypeMismatchError):
                    coerce_value("A", value, kw_type)


class CardTestCase(unittest.TestCase):
    """Tests for card-level helpers."""

    def test_fixed_card(self) -> None:
        card = make_fixed_card("bzero", 32768.0, "offset")
        self.assertEqual(card.keyword, "BZERO")
        self.assertEqual(card.value, 32768.0)
        self.assertEqual(card.comment, "offset")
        self.assertTrue(card.image.startswith("BZERO   =         32768.000000 / offset"))
        self.assertEqual(len(card.image), 80)
        tiny = make_fixed_card("TINY", 1.5e-7)
        self.assertNotIn("E", tiny.image.upper().split("=", 1)[1])
        self.assertIn("0.000000", tiny.image)
        with self.assertRaises(WriteError):
            make_fixed_card("TOOLONGKEY", 1.0)

    def test_is_blank_card(self) -> None:
        self.assertTrue(is_blank_card(blank_card()))
        self.assertTrue(is_blank_card(astropy.io.fits.Card.fromstring("        leading spaces then text")))
        self.assertFalse(is_blank_card(astropy.io.fits.Card("OBJECT", "M31")))
        self.assertFalse(is_blank_card(astropy.io.fits.Card("COMMENT", "a comment")))

    def test_purge_cards(self) -> None:
        header = astropy.io.fits.Header()
        header.append(("A", 1), useblanks=False, end=True)
        header.append(blank_card(), useblanks=False, end=True)
        header.append(("B", 2), useblanks=False, end=True)
        header.append(blank_card(), useblanks=False, end=True)
        header.append(blank_card(), useblanks=False, end=True)
        header.append(("C", 3), useblanks=False, end=True)
        header.append(blank_card(), useblanks=False, end=True)
        self.assertEqual(len(header), 7)
        self.assertEqual(purge_cards(header, is_blank_card), 4)
        self.assertEqual(list(header.keys()), ["A", "B", "C"])
        self.assertEqual([header[k] for k in "ABC"], [1, 2, 3])
        check_end_card(header)
        self.assertEqual(purge_cards(header, is_blank_card), 0)

    def test_strip_structural_cards(self) -> None:
        header = astropy.io.fits.PrimaryHDU(data=np.zeros((2, 3), dtype=np.int16)).header
        header.append(("OBJECT", "M31"), useblanks=False, end=True)
        header.append(("BZERO", 32768), useblanks=False, end=True)
        header.append(("BSCALE", 1), useblanks=False, end=True)
        header.append(("NAXISX", "not structural"), useblanks=False, end=True)
        header.append(("DATASUM", "0"), useblanks=False, end=True)
        strip_structural_cards(header)
        self.assertEqual(list(header.keys()), ["OBJECT", "BZERO", "BSCALE", "NAXISX"])
        self.assertEqual(header["BZERO"], 32768)


class ImageDescriptorTestCase(unittest.TestCase):
    """Tests for ImageDescriptor."""

    def make_header(self, **kwargs: object) -> astropy.io.fits.Header:
        header = astropy.io.fits.Header()
        for key, value in kwargs.items():
            header[key.upper()] = value
        return header

    def test_from_header(self) -> None:
        header = self.make_header(bitpix=16, naxis=2, naxis1=5, naxis2=3, bzero=32768, bscale=1)
        descriptor = ImageDescriptor.from_header(header)
        self.assertEqual(descriptor.shape, (3, 5))
        self.assertEqual(descriptor.size, 15)
        self.assertEqual(descriptor.pixel_type, PixelType.uint16)
        self.assertEqual(descriptor.physical_type, PixelType.int16)
        self.assertTrue(descriptor.is_scaled)
        self.assertEqual(ImageDescriptor.from_header(header, expected_bitpix=16), descriptor)
        with self.assertRaises(UnsupportedShapeError):
            ImageDescriptor.from_header(header, expected_bitpix=-32)

    def test_invalid(self) -> None:
        with self.assertRaises(UnsupportedShapeError):
            ImageDescriptor.from_header(self.make_header(bitpix=16, naxis=3, naxis1=2, naxis2=2, naxis3=2))
        with self.assertRaises(UnsupportedShapeError):
            ImageDescriptor.from_header(self.make_header(bitpix=12, naxis=2, naxis1=2, naxis2=2))
        with self.assertRaises(UnsupportedShapeError):
            ImageDescriptor.from_header(self.make_header(bitpix=8, naxis=2, naxis1=0, naxis2=2))
        with self.assertRaises(MissingKeywordError):
            ImageDescriptor.from_header(self.make_header(naxis=2, naxis1=2, naxis2=2))
        with self.assertRaises(MissingKeywordError):
            ImageDescriptor.from_header(self.make_header(bitpix=8, naxis=2, naxis1=2))

    def test_for_pixel_type(self) -> None:
        descriptor = ImageDescriptor.for_pixel_type(PixelType.uint16, 4, 2)
        self.assertEqual(descriptor.bitpix, 16)
        self.assertEqual(descriptor.bzero, 32768.0)
        self.assertEqual(descriptor.pixel_type, PixelType.uint16)
        with self.assertRaises(UnsupportedShapeError):
            ImageDescriptor.for_pixel_type(PixelType.float32, 0, 2)


if __name__ == "__main__":
    unittest.main()
