"""Tests for volume planning: bind mounts vs volumes-from."""

from __future__ import annotations

from unittest.mock import patch

from dockwork.volumes import plan_volumes

DIRS = ["/ws/j1", "/ws/j1@tmp"]


class TestNotContainerized:
    def test_every_dir_is_bind_mounted_to_itself(self):
        plan = plan_volumes(DIRS, None, [])
        assert plan.bind_mounts == {"/ws/j1": "/ws/j1", "/ws/j1@tmp": "/ws/j1@tmp"}
        assert plan.volumes_from_ids == []

    def test_mounted_volumes_are_irrelevant(self):
        plan = plan_volumes(DIRS, None, ["/ws"])
        assert list(plan.bind_mounts) == DIRS
        assert plan.volumes_from_ids == []


class TestContainerized:
    def test_covered_dirs_reuse_own_container(self):
        plan = plan_volumes(DIRS, "abc", {"/ws"})
        assert plan.volumes_from_ids == ["abc"]
        assert plan.bind_mounts == {}

    def test_container_id_listed_once(self):
        plan = plan_volumes(DIRS, "abc", ["/ws", "/other"])
        assert plan.volumes_from_ids == ["abc"]

    def test_prefix_match_is_not_path_aware(self):
        plan = plan_volumes(["/workspace2/job"], "abc", ["/workspace"])
        assert plan.volumes_from_ids == ["abc"]
        assert plan.bind_mounts == {}

    def test_first_matching_volume_wins(self):
        with patch("dockwork.volumes.logger") as mock_logger:
            plan_volumes(["/ws/j1"], "abc", ["/ws", "/ws/j1"])
        assert mock_logger.debug.call_args.kwargs["volume"] == "/ws"

    def test_uncovered_dir_falls_back_to_bind_mount(self):
        plan = plan_volumes(["/ws/j1", "/elsewhere/tmp"], "abc", ["/ws"])
        assert plan.volumes_from_ids == ["abc"]
        assert plan.bind_mounts == {"/elsewhere/tmp": "/elsewhere/tmp"}

    def test_uncovered_dir_left_out_when_fallback_disabled(self):
        with patch("dockwork.volumes.logger") as mock_logger:
            plan = plan_volumes(["/elsewhere/j1"], "abc", ["/ws"], bind_uncovered=False)
        assert plan.bind_mounts == {}
        assert plan.volumes_from_ids == []
        mock_logger.warning.assert_called_once()

    def test_each_dir_in_exactly_one_collection(self):
        dirs = ["/ws/a", "/data/b", "/ws/c", "/tmp/d"]
        plan = plan_volumes(dirs, "abc", ["/ws", "/data"])
        covered = [d for d in dirs if d.startswith(("/ws", "/data"))]
        assert set(plan.bind_mounts) == set(dirs) - set(covered)
        assert plan.volumes_from_ids == ["abc"]

    def test_no_mounted_volumes(self):
        plan = plan_volumes(DIRS, "abc", [])
        assert list(plan.bind_mounts) == DIRS
        assert plan.volumes_from_ids == []
