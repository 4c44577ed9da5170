import logging
from logging.handlers import RotatingFileHandler

import pytest

from goalboard.config_manager import SystemConfig, config, get_config
from goalboard.exceptions import (
    ConfigError,
    GoalNotFoundError,
    PersistenceFailure,
    TransferConflictError,
    error_title,
)
from goalboard.logger import ROOT_LOGGER_NAME, get_logger, setup_logging
from goalboard.notifiers import CollectingNotifier, LogNotifier, Notification, NotificationPriority


def test_runtime_yaml_overrides_defaults(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text(
        "LAST_NON_EMPTY_WEEK_LOOKBACK: 4\nPULL_ADHOC_GOALS: false\nSOMETHING_ELSE: 1\n",
        encoding="utf-8",
    )
    cfg = get_config(path)
    assert cfg.LAST_NON_EMPTY_WEEK_LOOKBACK == 4
    assert cfg.PULL_ADHOC_GOALS is False
    assert cfg.MOVE_ONLY_INCOMPLETE is True
    assert not hasattr(cfg, "SOMETHING_ELSE")


def test_missing_or_malformed_yaml_falls_back_to_defaults(tmp_path):
    assert get_config(tmp_path / "absent.yaml") == SystemConfig()

    bad = tmp_path / "bad.yaml"
    bad.write_text("LAST_NON_EMPTY_WEEK_LOOKBACK: [1, 2\n", encoding="utf-8")
    assert get_config(bad) == SystemConfig()

    listing = tmp_path / "list.yaml"
    listing.write_text("- 1\n- 2\n", encoding="utf-8")
    assert get_config(listing) == SystemConfig()


def test_wrongly_typed_value_is_rejected(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("LAST_NON_EMPTY_WEEK_LOOKBACK: four\n", encoding="utf-8")
    with pytest.raises(ConfigError) as info:
        get_config(path)
    assert "LAST_NON_EMPTY_WEEK_LOOKBACK must be int" in info.value.message
    assert info.value.config_path == str(path)

    flag = tmp_path / "flag.yaml"
    flag.write_text("LAST_NON_EMPTY_WEEK_LOOKBACK: true\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        get_config(flag)


def test_setup_logging_writes_rotating_files(tmp_path):
    logger = setup_logging(logs_dir=tmp_path)
    try:
        assert logger.name == ROOT_LOGGER_NAME
        assert len(logger.handlers) == 3
        rotating = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert [h.maxBytes for h in rotating] == [config.LOG_MAX_BYTES] * 2
        assert [h.backupCount for h in rotating] == [config.LOG_BACKUP_COUNT] * 2

        get_logger("transfer").info("moved 2 goals")
        get_logger("store").error("write failed")
        for handler in logger.handlers:
            handler.flush()

        assert "moved 2 goals" in (tmp_path / "system.log").read_text(encoding="utf-8")
        errors = (tmp_path / "error.log").read_text(encoding="utf-8")
        assert "write failed" in errors
        assert "moved 2 goals" not in errors

        # calling again replaces handlers instead of stacking them
        setup_logging(logs_dir=tmp_path)
        assert len(logger.handlers) == 3
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()


def test_get_logger_namespace():
    assert get_logger("completion").name == "goalboard.completion"
    assert get_logger().name == "goalboard"


def test_error_messages_and_titles():
    error = GoalNotFoundError("g_1")
    assert error.get_user_message() == "Goal not found: g_1\nHint: Refresh the view and try again"
    assert error_title(error) == "Not Found"
    assert error_title(ValueError("x")) == "System Error"

    failure = PersistenceFailure.wrap(OSError("disk full"))
    assert isinstance(failure.cause, OSError)
    assert PersistenceFailure.wrap(failure) is failure

    conflict = TransferConflictError(["a", "b"], ["b", "c"])
    assert conflict.dropped_ids == {"a"}
    assert conflict.added_ids == {"c"}
    assert error_title(conflict) == "Operation Conflict"


def test_collecting_notifier():
    notifier = CollectingNotifier()
    assert notifier.send(Notification("Saved", "ok"))
    assert [n.title for n in notifier.drain()] == ["Saved"]
    assert notifier.sent == []

    disabled = CollectingNotifier({"enabled": False})
    assert not disabled.is_available()
    assert disabled.send(Notification("Saved", "ok")) is False


def test_log_notifier(caplog):
    caplog.set_level(logging.WARNING, logger="goalboard")
    notifier = LogNotifier()
    assert notifier.send(Notification("System Error", "not saved", priority=NotificationPriority.HIGH))
    assert "System Error: not saved" in caplog.text
    assert notifier.get_name() == "log"
