import unittest

from telemetry_viewer.errors import MalformedDocumentError
from telemetry_viewer.parsers.summary import (
    ai_difficulty,
    derive_summary,
    qualifying_lap_indicators,
    select_focus_driver,
    sort_by_date_desc,
)

RACE_PATH = "2026_01_26/race-info/Race_Spa_2026_01_26_22_14_52.json"
QUALI_PATH = "Short_Qualifying_Zandvoort_2026_02_07_11_33_48.json"


def _lap(ms: int, flags: int = 15, text: str = "") -> dict:
    return {"lap-time-in-ms": ms, "lap-time-str": text, "lap-valid-bit-flags": flags}


def _driver(name: str, laps: list[dict], *, is_player: bool = False, best_lap: int = -1) -> dict:
    return {
        "driver-name": name,
        "is-player": is_player,
        "session-history": {
            "best-lap-time-lap-num": best_lap,
            "lap-history-data": laps,
        },
    }


def _document(*drivers: dict, ai: int | None = 70, online: int = 0) -> dict:
    session_info: dict = {"network-game": online}
    if ai is not None:
        session_info["ai-difficulty"] = ai
    return {"session-info": session_info, "classification-data": list(drivers)}


class FocusDriverTests(unittest.TestCase):
    def test_player_is_preferred(self) -> None:
        player = _driver("Player", [_lap(90_000)], is_player=True)
        rival = _driver("Rival", [_lap(90_000), _lap(91_000)])

        focus, is_spectator = select_focus_driver([rival, player])

        self.assertIs(focus, player)
        self.assertFalse(is_spectator)

    def test_spectator_picks_most_timed_laps(self) -> None:
        few = _driver("Few", [_lap(90_000), _lap(0)])
        many = _driver("Many", [_lap(90_000), _lap(91_000), _lap(92_000)])

        focus, is_spectator = select_focus_driver([few, many])

        self.assertIs(focus, many)
        self.assertTrue(is_spectator)

    def test_spectator_tie_keeps_earlier_entry(self) -> None:
        first = _driver("First", [_lap(90_000), _lap(91_000)])
        second = _driver("Second", [_lap(89_000), _lap(88_000)])

        focus, _ = select_focus_driver([first, second])

        self.assertIs(focus, first)

    def test_no_timed_laps_selects_nobody(self) -> None:
        focus, is_spectator = select_focus_driver([_driver("Idle", [_lap(0)])])

        self.assertIsNone(focus)
        self.assertTrue(is_spectator)


class DeriveSummaryTests(unittest.TestCase):
    def test_race_summary(self) -> None:
        document = _document(
            _driver("Player", [_lap(95_000), _lap(0), _lap(94_000, flags=7)], is_player=True, best_lap=3),
            ai=85,
        )

        summary, is_valid = derive_summary(document, RACE_PATH)

        self.assertTrue(is_valid)
        self.assertEqual(summary.relativePath, RACE_PATH)
        self.assertEqual(summary.slug, "race-spa-2026-01-26-22-14-52")
        self.assertEqual(summary.sessionType, "Race")
        self.assertEqual(summary.track, "Spa")
        self.assertEqual(summary.date, "2026-01-26T22:14:52")
        self.assertEqual(summary.validLapCount, 2)
        self.assertEqual(summary.aiDifficulty, 85)
        self.assertFalse(summary.isSpectator)
        # Lap indicators and best lap are qualifying-only
        self.assertIsNone(summary.lapIndicators)
        self.assertIsNone(summary.bestLapTime)

    def test_qualifying_indicators_and_best_lap(self) -> None:
        laps = [
            _lap(0),  # out lap
            _lap(80_500, flags=15, text="1:20.500"),
            _lap(79_900, flags=15, text="1:19.900"),
            _lap(81_000, flags=3, text="1:21.000"),
        ]
        document = _document(_driver("Player", laps, is_player=True, best_lap=2))

        summary, is_valid = derive_summary(document, QUALI_PATH)

        self.assertTrue(is_valid)
        self.assertEqual(summary.validLapCount, 3)
        self.assertEqual(summary.lapIndicators, ("valid", "best", "invalid"))
        # best-lap index points into the unfiltered history
        self.assertEqual(summary.bestLapTime, "1:20.500")
        self.assertEqual(summary.bestLapTimeMs, 80_500)

    def test_best_lap_without_display_string_is_omitted(self) -> None:
        document = _document(_driver("Player", [_lap(80_000)], is_player=True, best_lap=1))

        summary, _ = derive_summary(document, QUALI_PATH)

        self.assertEqual(summary.lapIndicators, ("best",))
        self.assertIsNone(summary.bestLapTime)
        self.assertIsNone(summary.bestLapTimeMs)

    def test_best_lap_index_out_of_range(self) -> None:
        document = _document(_driver("Player", [_lap(80_000, text="1:20.000")], is_player=True, best_lap=5))

        summary, _ = derive_summary(document, QUALI_PATH)

        self.assertEqual(summary.lapIndicators, ("valid",))
        self.assertIsNone(summary.bestLapTime)

    def test_zero_valid_laps_is_invalid(self) -> None:
        document = _document(_driver("Player", [_lap(0), _lap(-1)], is_player=True))

        summary, is_valid = derive_summary(document, RACE_PATH)

        self.assertFalse(is_valid)
        self.assertEqual(summary.validLapCount, 0)

    def test_missing_classification_is_invalid_not_malformed(self) -> None:
        summary, is_valid = derive_summary({"session-info": {}}, RACE_PATH)

        self.assertFalse(is_valid)
        self.assertTrue(summary.isSpectator)

    def test_structural_errors_raise(self) -> None:
        with self.assertRaises(MalformedDocumentError):
            derive_summary(["not", "an", "object"], RACE_PATH)
        with self.assertRaises(MalformedDocumentError):
            derive_summary({"classification-data": {"0": {}}}, RACE_PATH)

    def test_json_excludes_unset_optionals(self) -> None:
        document = _document(_driver("Player", [_lap(90_000)], is_player=True))

        payload = derive_summary(document, RACE_PATH).summary.to_json()

        self.assertNotIn("lapIndicators", payload)
        self.assertNotIn("bestLapTime", payload)
        self.assertEqual(payload["validLapCount"], 1)
        self.assertEqual(payload["isSpectator"], False)


class AiDifficultyTests(unittest.TestCase):
    def test_online_sessions_report_zero(self) -> None:
        self.assertEqual(ai_difficulty(_document(ai=90, online=1)), 0)

    def test_offline_taken_verbatim(self) -> None:
        self.assertEqual(ai_difficulty(_document(ai=42)), 42)

    def test_missing_defaults_to_zero(self) -> None:
        self.assertEqual(ai_difficulty(_document(ai=None)), 0)
        self.assertEqual(ai_difficulty({}), 0)


class IndicatorAndSortTests(unittest.TestCase):
    def test_indicators_skip_untimed_laps(self) -> None:
        laps = [_lap(0), _lap(90_000, flags=14), _lap(0), _lap(89_000, flags=15)]

        self.assertEqual(qualifying_lap_indicators(laps, -1), ("invalid", "valid"))

    def test_sort_is_descending_and_stable(self) -> None:
        older = derive_summary(_document(_driver("P", [_lap(1)], is_player=True)), "Race_Spa_2026_01_01_10_00_00.json").summary
        tie_a = derive_summary(_document(_driver("P", [_lap(1)], is_player=True)), "Race_Monza_2026_02_01_10_00_00.json").summary
        tie_b = derive_summary(_document(_driver("P", [_lap(1)], is_player=True)), "Practice_Monza_2026_02_01_10_00_00.json").summary

        ordered = sort_by_date_desc([older, tie_a, tie_b])

        self.assertEqual([s.slug for s in ordered], [tie_a.slug, tie_b.slug, older.slug])
        for earlier, later in zip(ordered, ordered[1:]):
            self.assertGreaterEqual(earlier.date, later.date)
