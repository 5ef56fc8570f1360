import math
import pathlib
import sys
import unittest

# Ensure src/ is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from funlib.core.models import (
    Action,
    ChannelKind,
    FileIdentity,
    Metadata,
    Script,
    clerp_at,
    make_channel,
)


def _pairs(actions):
    return [(a.at, a.pos) for a in actions]


class NormalizeTest(unittest.TestCase):
    def test_rounds_sorts_and_keeps_later_duplicate(self):
        script = Script(
            actions=[Action(1000.4, 50.6), Action(0, 10), Action(1000, 20), Action(-50, 30), Action(-10, 40)]
        )
        script.normalize()
        self.assertEqual(_pairs(script.actions), [(0, 10), (1000, 20)])
        self.assertEqual(script.defects, [])

    def test_last_negative_action_is_pulled_to_zero(self):
        script = Script(actions=[Action(-20, 10), Action(-10, 40), Action(500, 60)])
        script.normalize()
        self.assertEqual(_pairs(script.actions), [(0, 40), (500, 60)])

    def test_positions_are_clamped(self):
        script = Script(actions=[Action(0, -5), Action(100, 140)])
        script.normalize()
        self.assertEqual(_pairs(script.actions), [(0, 0), (100, 100)])

    def test_non_finite_values_are_flagged_not_dropped(self):
        script = Script(actions=[Action(0, float("nan")), Action(100, 50)])
        script.set_channel(make_channel("roll", [Action(0, 50), Action(float("inf"), 20)]))
        with self.assertLogs("funlib.core.models", level="WARNING"):
            script.normalize()
        self.assertEqual(len(script.actions), 2)
        self.assertEqual(script.actions[0].pos, 0)
        kinds = {(d.channel, d.field, d.kind) for d in script.defects}
        self.assertIn(("stroke", "pos", "non-finite"), kinds)
        self.assertIn(("roll", "at", "non-finite"), kinds)

    def test_sets_metadata_duration_from_actions(self):
        script = Script(actions=[Action(0, 0), Action(1500, 100)])
        script.set_channel(make_channel("roll", [Action(0, 0), Action(2200, 100)], Metadata(title="r")))
        script.normalize()
        self.assertEqual(script.metadata.duration, 3)
        self.assertEqual(script.channels["roll"].metadata.duration, 3)

    def test_find_defects_does_not_mutate(self):
        script = Script(actions=[Action(10, 50), Action(5, 120), Action(-1, math.nan)])
        found = script.find_defects()
        kinds = sorted(d.kind for d in found)
        self.assertEqual(kinds, ["negative-time", "non-finite", "out-of-order", "out-of-order", "out-of-range"])
        self.assertEqual(script.actions[1].pos, 120)


class DurationTest(unittest.TestCase):
    def test_actual_duration_distrusts_odd_metadata(self):
        script = Script(actions=[Action(0, 0), Action(10000, 100)])
        self.assertEqual(script.actual_duration, 10)
        script.metadata.duration = 25
        self.assertEqual(script.actual_duration, 25)
        script.metadata.duration = 31
        self.assertEqual(script.actual_duration, 10)
        script.metadata.duration = 5
        self.assertEqual(script.actual_duration, 10)

    def test_rescale_duration_from_milliseconds(self):
        meta = Metadata(duration=600000)
        meta.rescale_duration(1.0)
        self.assertEqual(meta.duration, 600)
        meta = Metadata(duration=3000)
        meta.rescale_duration(1.0)
        self.assertEqual(meta.duration, 3000)


class ChannelTest(unittest.TestCase):
    def test_make_channel_canonicalises(self):
        channel = make_channel("R1", [Action(0, 1)])
        self.assertEqual(channel.name, "roll")
        self.assertEqual(channel.axis, "R1")
        self.assertIs(channel.kind, ChannelKind.SECONDARY)
        self.assertTrue(make_channel("L0").is_primary)

    def test_all_channels_sorted_and_shared(self):
        script = Script(actions=[Action(0, 0)])
        script.set_channel(make_channel("pitch", [Action(0, 1)]))
        script.set_channel(make_channel("surge", [Action(0, 2)]))
        names = [c.name for c in script.all_channels()]
        self.assertEqual(names, ["stroke", "surge", "pitch"])
        self.assertEqual(list(script.channels), ["surge", "pitch"])
        self.assertIs(script.all_channels()[0].actions, script.actions)

    def test_set_channel_with_root_name_replaces_root(self):
        script = Script(actions=[Action(0, 0)])
        script.set_channel(make_channel("L0", [Action(5, 5)]))
        self.assertEqual(_pairs(script.actions), [(5, 5)])
        self.assertEqual(script.channels, {})

    def test_clone_is_deep(self):
        script = Script(actions=[Action(0, 0)], file=FileIdentity.from_path("a/b.funscript"))
        script.set_channel(make_channel("roll", [Action(0, 10)]))
        script.file.merged_files.append(FileIdentity.from_path("a/b.roll.funscript"))
        copy = script.clone()
        copy.actions[0].pos = 99
        copy.channels["roll"].actions[0].pos = 99
        copy.file.merged_files.clear()
        self.assertEqual(script.actions[0].pos, 0)
        self.assertEqual(script.channels["roll"].actions[0].pos, 10)
        self.assertEqual(len(script.file.merged_files), 1)


class FileIdentityTest(unittest.TestCase):
    def test_suffix_detection(self):
        ident = FileIdentity.from_path("videos/show.R1.funscript")
        self.assertEqual(ident.title, "show")
        self.assertEqual(ident.channel_suffix, "R1")
        self.assertEqual(ident.channel, "roll")
        self.assertEqual(ident.group_key, ("videos", "show"))
        self.assertEqual(ident.primary().name, "show.funscript")

    def test_dotted_title_without_channel(self):
        ident = FileIdentity.from_path("show.part.2.funscript")
        self.assertEqual(ident.title, "show.part.2")
        self.assertIsNone(ident.channel)
        self.assertEqual(ident.path, "show.part.2.funscript")

    def test_singleaxis_is_primary(self):
        self.assertIsNone(FileIdentity.from_path("show.singleaxis.funscript").channel)


class InterpolationTest(unittest.TestCase):
    def test_clerp_at(self):
        actions = [Action(0, 0), Action(1000, 100)]
        self.assertEqual(clerp_at(actions, 250), 25)
        self.assertEqual(clerp_at(actions, -10), 0)
        self.assertEqual(clerp_at(actions, 5000), 100)
        self.assertEqual(clerp_at([], 10), 50)


if __name__ == "__main__":
    unittest.main()
