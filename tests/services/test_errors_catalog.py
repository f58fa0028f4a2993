import pytest

from remoteops.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("missing_credential", env_var="REMOTEOPS_PASSWORD")

    assert "REMOTEOPS_PASSWORD is not set" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("does_not_exist")
