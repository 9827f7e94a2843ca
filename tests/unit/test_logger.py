import json
from pathlib import Path

from elementsync.utils.logger import attach_file_logger, detach_file_logger, get_logger, log_with_context


def test_scoped_context_lands_in_the_json_log(tmp_path: Path):
    path = tmp_path / "run" / "engine.log"
    handler = attach_file_logger(path)
    try:
        scoped = log_with_context(get_logger("elementsync.test"), target="css:#banner")
        log_with_context(scoped, condition="visible").warning("acquire failed")
    finally:
        detach_file_logger(handler)

    record = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
    assert record["msg"] == "acquire failed"
    assert record["level"] == "WARNING"
    assert record["logger"] == "elementsync.test"
    assert (record["target"], record["condition"]) == ("css:#banner", "visible")
