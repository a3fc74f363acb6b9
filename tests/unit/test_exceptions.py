import logging

from baas.core.exceptions import (
    InsufficientPermissions,
    InvalidKey,
    MalformedIdentifier,
    MissingKey,
    OrphanedKey,
)
from baas.core.logging import SecretMaskingFilter


class TestErrorTaxonomy:

    def test_tags_and_statuses(self):
        assert [(e().error, e.status_code) for e in (MissingKey, InvalidKey, OrphanedKey)] == [
            ("MissingKey", 401),
            ("InvalidKey", 401),
            ("OrphanedKey", 401),
        ]
        assert MalformedIdentifier().status_code == 400

    def test_permission_error_body(self):
        error = InsufficientPermissions(required=["storage"], current=["auth", "database"])

        assert error.status_code == 403
        assert error.to_dict() == {
            "error": "InsufficientPermissions",
            "message": "API key does not have the required permissions",
            "required": ["storage"],
            "current": ["auth", "database"],
        }


class TestSecretMaskingFilter:

    def test_secret_is_redacted(self):
        secret = "live_" + "0123456789abcdef" * 4
        record = logging.LogRecord("baas", logging.INFO, __file__, 1, "issued %s", (secret,), None)

        SecretMaskingFilter().filter(record)

        assert record.getMessage() == "issued live_0123...cdef"

    def test_plain_messages_untouched(self):
        record = logging.LogRecord("baas", logging.INFO, __file__, 1, "hello %s", ("world",), None)

        SecretMaskingFilter().filter(record)

        assert record.getMessage() == "hello world"
