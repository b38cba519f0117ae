import json
import os
import tempfile
import types
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi import HTTPException

from telemetry_viewer import config
from telemetry_viewer.routers import demo as demo_router
from telemetry_viewer.routers import sessions as sessions_router
from telemetry_viewer.session_index import SessionIndex, find_json_files


def _document(lap_times: list[int]) -> dict:
    return {
        "session-info": {"ai-difficulty": 75, "network-game": 0},
        "classification-data": [
            {
                "is-player": True,
                "session-history": {
                    "best-lap-time-lap-num": 1,
                    "lap-history-data": [
                        {"lap-time-in-ms": ms, "lap-time-str": "1:30.000", "lap-valid-bit-flags": 15}
                        for ms in lap_times
                    ],
                },
            }
        ],
    }


def _request(index: SessionIndex | None):
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(session_index=index)))


class _TelemetryDirCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, relative_path: str, payload) -> Path:
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(payload, (dict, list)):
            path.write_text(json.dumps(payload), encoding="utf-8")
        else:
            path.write_text(payload, encoding="utf-8")
        return path


class SessionIndexTests(_TelemetryDirCase):
    async def test_lists_valid_sessions_newest_first(self) -> None:
        self._write("2026_01_26/race-info/Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))
        self._write("2026_02_08/race-info/Race_Monza_2026_02_08_18_00_00.json", _document([90_000, 91_000]))
        self._write("2026_02_09/race-info/Practice_Baku_2026_02_09_10_00_00.json", _document([0]))
        self._write("2026_02_10/race-info/Race_Imola_2026_02_10_10_00_00.json", "{not json")
        self._write("notes.txt", "ignored")

        sessions = await SessionIndex(self.root).list_sessions()

        self.assertEqual([s.track for s in sessions], ["Monza", "Spa"])
        self.assertEqual(sessions[0].relativePath, "2026_02_08/race-info/Race_Monza_2026_02_08_18_00_00.json")
        self.assertEqual(sessions[0].validLapCount, 2)

    async def test_rescan_picks_up_new_files(self) -> None:
        index = SessionIndex(self.root)
        self.assertEqual(await index.list_sessions(), [])

        self._write("Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))

        self.assertEqual(len(await index.list_sessions()), 1)

    async def test_unchanged_files_are_not_reparsed(self) -> None:
        self._write("Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))
        index = SessionIndex(self.root)
        await index.list_sessions()

        with patch("telemetry_viewer.session_index.derive_summary") as derive:
            sessions = await index.list_sessions()

        derive.assert_not_called()
        self.assertEqual(len(sessions), 1)

    async def test_resolve_path_rescans_lazily(self) -> None:
        path = self._write("2026_01_26/Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))
        index = SessionIndex(self.root)

        resolved = await index.resolve_path("race-spa-2026-01-26-22-14-52")

        self.assertEqual(resolved, path)
        self.assertIsNone(await index.resolve_path("race-monza-2026-02-08-18-00-00"))

    async def test_resolve_path_for_deleted_file(self) -> None:
        path = self._write("Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))
        index = SessionIndex(self.root)
        await index.list_sessions()
        os.remove(path)

        self.assertIsNone(await index.resolve_path("race-spa-2026-01-26-22-14-52"))

    def test_find_json_files_on_missing_root(self) -> None:
        self.assertEqual(find_json_files(self.root / "missing"), [])


class SessionsRouterTests(_TelemetryDirCase):
    async def test_unconfigured_service_answers_503(self) -> None:
        for index in (None, SessionIndex(None)):
            with self.subTest(index=index):
                with self.assertRaises(HTTPException) as ctx:
                    await sessions_router.list_sessions(_request(index))
                self.assertEqual(ctx.exception.status_code, 503)

                with self.assertRaises(HTTPException) as ctx:
                    await sessions_router.get_session("race-spa", _request(index))
                self.assertEqual(ctx.exception.status_code, 503)

    async def test_list_and_get(self) -> None:
        path = self._write("Race_Spa_2026_01_26_22_14_52.json", _document([95_000]))
        request = _request(SessionIndex(self.root))

        sessions = await sessions_router.list_sessions(request)
        response = await sessions_router.get_session(sessions[0].slug, request)

        self.assertEqual(response.path, path)
        self.assertEqual(response.media_type, "application/json")

    async def test_unknown_slug_is_404(self) -> None:
        request = _request(SessionIndex(self.root))

        with self.assertRaises(HTTPException) as ctx:
            await sessions_router.get_session("race-spa", request)

        self.assertEqual(ctx.exception.status_code, 404)


class DemoRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.demo_dir = Path(self._tmp.name)
        (self.demo_dir / "sessions.json").write_text("[]", encoding="utf-8")
        (self.demo_dir / "race-spa.json").write_text("{}", encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_serves_manifest_and_documents(self) -> None:
        with patch.object(config, "DEMO_DIR", self.demo_dir):
            manifest = demo_router.get_manifest()
            document = demo_router.get_demo_session("race-spa")

        self.assertEqual(manifest.path, self.demo_dir / "sessions.json")
        self.assertEqual(document.path, self.demo_dir / "race-spa.json")

    def test_missing_and_invalid_slugs_are_404(self) -> None:
        with patch.object(config, "DEMO_DIR", self.demo_dir):
            for slug in ("race-monza", "../secrets", "Race_Spa"):
                with self.subTest(slug=slug):
                    with self.assertRaises(HTTPException) as ctx:
                        demo_router.get_demo_session(slug)
                    self.assertEqual(ctx.exception.status_code, 404)
