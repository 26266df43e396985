#!/usr/bin/env python3
"""
Tests for the MeltyFi deployment script
"""

from unittest.mock import patch

from scripts.deploy_meltyfi import PLAN_PATH, main


@patch("scripts.deploy_meltyfi.cli_main", return_value=0)
def test_fresh_deploy_uses_bundled_plan(mock_cli):
    assert main([]) == 0
    mock_cli.assert_called_once_with(["run", PLAN_PATH, "--export", "deployment.json"])
    assert PLAN_PATH.endswith("meltyfi.json")


@patch("scripts.deploy_meltyfi.cli_main", return_value=1)
def test_resume_passes_run_id(mock_cli):
    assert main(["--resume", "run-7", "--export", "out.json"]) == 1
    mock_cli.assert_called_once_with(["resume", "run-7", "--export", "out.json"])
