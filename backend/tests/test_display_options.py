"""
Invoice display option parsing and storage tests.
"""

import pytest

from gemledger.errors import ValidationError
from gemledger.services import display_options
from gemledger.services.display_options import InvoiceDisplayOptions


class TestFromMapping:

    def test_defaults_show_everything(self):
        options = display_options.from_mapping(None)
        assert all(display_options.to_mapping(options).values())

    def test_partial_mapping_keeps_base(self):
        base = InvoiceDisplayOptions(show_sku=False)
        options = display_options.from_mapping({"showGemType": False}, base)
        assert options.show_gem_type is False
        assert options.show_sku is False
        assert options.show_price is True

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError, match="showLogo"):
            display_options.from_mapping({"showLogo": True})

    def test_non_boolean_rejected(self):
        with pytest.raises(ValidationError):
            display_options.from_mapping({"showPrice": "no"})

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            display_options.from_mapping(["showPrice"])

    def test_external_keys(self):
        assert display_options.TOGGLE_KEYS["showGemType"] == "show_gem_type"
        assert display_options.TOGGLE_KEYS["showCertificates"] == "show_certificates"


class TestStorage:

    def test_encode_decode(self):
        options = InvoiceDisplayOptions(show_rashi=False, show_price=False)
        assert display_options.decode(display_options.encode(options)) == options

    @pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]"])
    def test_bad_blob_falls_back_to_defaults(self, raw):
        assert display_options.decode(raw) == InvoiceDisplayOptions()

    def test_stale_keys_ignored(self):
        options = display_options.decode('{"showPrice": false, "showBarcode": true}')
        assert options == InvoiceDisplayOptions(show_price=False)
