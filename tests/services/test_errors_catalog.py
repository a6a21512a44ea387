import pytest

from kubeinstaller.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("step_failed", step="install_packages")

    assert "Step 'install_packages' failed." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("not-a-code")
