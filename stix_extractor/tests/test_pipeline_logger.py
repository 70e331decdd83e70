"""Tests for stix_extractor.core.pipeline_logger module."""

import logging

from stix_extractor.core.pipeline_logger import get_logger


def _file_handlers():
    return [h for h in logging.getLogger("stix_extractor").handlers if isinstance(h, logging.FileHandler)]


class TestPipelineRun:
    def test_console_only_without_log_dir(self):
        run = get_logger().start_pipeline("report.pdf")
        assert run.log_file is None
        assert _file_handlers() == []
        run.end_pipeline()

    def test_log_file_named_after_label(self, tmp_path):
        run = get_logger().start_pipeline("reports/apt28.pdf", log_dir=tmp_path)
        assert run.log_file.parent == tmp_path
        assert run.log_file.name.startswith("apt28_")
        assert run.log_file.name.endswith(f"_{run.run_id}.log")
        run.end_pipeline()

    def test_interleaved_runs_keep_separate_files(self, tmp_path):
        logger = get_logger()
        first = logger.start_pipeline("first.pdf", log_dir=tmp_path)
        second = logger.start_pipeline("second.pdf", log_dir=tmp_path)

        first.info("first message")
        second.warning("second message")
        first.end_pipeline(success=False)
        second.info("second after first closed")
        second.end_pipeline(stats={"objects": 2})

        first_log = first.log_file.read_text(encoding="utf-8")
        second_log = second.log_file.read_text(encoding="utf-8")
        assert "first message" in first_log
        assert "Extraction FAILED" in first_log
        assert "second" not in first_log
        assert "first" not in second_log
        assert "second after first closed" in second_log
        assert "Extraction COMPLETE" in second_log
        assert _file_handlers() == []

    def test_unrelated_records_not_written(self, tmp_path):
        run = get_logger().start_pipeline("report.pdf", log_dir=tmp_path)
        logging.getLogger("stix_extractor.core.storage").warning("module level record")
        run.end_pipeline()

        assert "module level record" not in run.log_file.read_text(encoding="utf-8")

    def test_run_ids_unique(self):
        logger = get_logger()
        runs = [logger.start_pipeline(f"doc{i}.pdf") for i in range(3)]
        assert len({run.run_id for run in runs}) == 3
        for run in runs:
            run.end_pipeline()
