import json
import tempfile
import unittest
from pathlib import Path

from livelens_relay.config import RelayConfig, load_relay_config, relay_config_from_dict
from livelens_relay.runner import parse_args, relay_config_from_args


class TestRelayConfig(unittest.TestCase):
    def _write(self, payload: dict, name: str = "relay.json") -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_defaults(self) -> None:
        cfg = RelayConfig()
        self.assertEqual(cfg.input_size, 320)
        self.assertEqual(cfg.score_threshold, 0.35)
        self.assertEqual(cfg.iou_threshold, 0.3)
        self.assertEqual(cfg.sigma, 0.5)
        self.assertEqual(cfg.max_detections, 50)
        self.assertEqual(cfg.flush_interval_ms, 200)
        self.assertEqual(cfg.batch_size, 4)
        self.assertEqual(cfg.max_retries, 3)
        self.assertIsNone(cfg.destination_url)

    def test_derived_configs(self) -> None:
        cfg = RelayConfig(score_threshold=0.5, batch_size=2, max_queue_len=None)
        post = cfg.post_config(["a", "b"])
        self.assertEqual(post.score_threshold, 0.5)
        self.assertEqual(list(post.labels), ["a", "b"])
        delivery = cfg.delivery_config()
        self.assertEqual(delivery.batch_size, 2)
        self.assertIsNone(delivery.max_queue_len)

    def test_load_ok(self) -> None:
        path = self._write({"score_threshold": 0.5, "batch_size": 2, "destination_url": " http://x/update "})
        cfg = load_relay_config(path)
        self.assertEqual(cfg.score_threshold, 0.5)
        self.assertEqual(cfg.batch_size, 2)
        self.assertEqual(cfg.destination_url, "http://x/update")

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_relay_config(self._write({"batch_size": 2, "extra": 1}))

    def test_invalid_values_rejected(self) -> None:
        for bad in (
            {"score_threshold": 1.5},
            {"sigma": 0},
            {"batch_size": 0},
            {"max_retries": -1},
            {"max_queue_len": 0},
            {"batch_size": 2.5},
            {"batch_size": True},
            {"input_size": None},
            {"destination_url": ""},
        ):
            with self.subTest(bad=bad), self.assertRaises(ValueError):
                relay_config_from_dict(bad)

    def test_null_queue_len_is_unbounded(self) -> None:
        self.assertIsNone(relay_config_from_dict({"max_queue_len": None}).max_queue_len)

    def test_bad_json_and_missing_file(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_relay_config(path)
        with self.assertRaises(FileNotFoundError):
            load_relay_config(Path(tmpdir.name) / "missing.json")


class TestRunnerArgs(unittest.TestCase):
    def _write(self, payload: dict) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "run.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_cli_defaults_match_relay_config(self) -> None:
        args = parse_args(["--video", "clip.mp4"])
        self.assertEqual(relay_config_from_args(args), RelayConfig())

    def test_zero_queue_len_means_unbounded(self) -> None:
        args = parse_args(["--webcam", "0", "--max-queue-len", "0"])
        self.assertIsNone(relay_config_from_args(args).max_queue_len)

    def test_run_config_fills_args_and_cli_wins(self) -> None:
        path = self._write(
            {
                "source": {"rtsp": "rtsp://cam/1"},
                "batch_size": 8,
                "score_threshold": 0.4,
                "destination_url": "http://relay/update",
                "drain_on_exit": True,
            }
        )
        args = parse_args(["--config", str(path), "--batch-size", "2"])
        self.assertEqual(args.rtsp, "rtsp://cam/1")
        self.assertTrue(args.drain_on_exit)

        cfg = relay_config_from_args(args)
        self.assertEqual(cfg.batch_size, 2)
        self.assertEqual(cfg.score_threshold, 0.4)
        self.assertEqual(cfg.destination_url, "http://relay/update")

    def test_cli_source_overrides_run_config_source(self) -> None:
        path = self._write({"source": {"video": "a.mp4"}})
        args = parse_args(["--config", str(path), "--webcam", "1"])
        self.assertEqual(args.webcam, 1)
        self.assertIsNone(args.video)

    def test_run_config_rejects_unknown_and_bad_types(self) -> None:
        for payload in (
            {"source": {"video": "a.mp4"}, "nope": 1},
            {"source": {"video": "a.mp4", "webcam": 0}},
            {"source": {"usb": 0}},
            {"source": {"video": "a.mp4"}, "show": "yes"},
            {"source": {"video": "a.mp4"}, "max_frames": 1.5},
        ):
            with self.subTest(payload=payload), self.assertRaises(ValueError):
                parse_args(["--config", str(self._write(payload))])

    def test_missing_source_is_an_error(self) -> None:
        with self.assertRaises(SystemExit):
            parse_args([])


if __name__ == "__main__":
    unittest.main()
