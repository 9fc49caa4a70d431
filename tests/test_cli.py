"""End-to-end CLI runs against real image files."""

import json

import numpy as np
import pytest
from PIL import Image

from timestack.cli.app import main
from timestack.cli.commands_example import next_example_path


def _write_frames(root, arrays):
    root.mkdir(parents=True, exist_ok=True)
    for idx, array in enumerate(arrays):
        Image.fromarray(array).save(root / f"frame_{idx:03d}.png")


@pytest.fixture
def frame_dir(tmp_path, random_arrays):
    root = tmp_path / "frames"
    _write_frames(root, random_arrays)
    return root


class TestRun:
    def test_lighten_directory(self, tmp_path, frame_dir, random_arrays, capsys):
        out = tmp_path / "out" / "stack.png"

        main(["run", str(frame_dir), "--output", str(out), "--mode", "lighten", "--threads", "2"])

        with Image.open(out) as image:
            written = np.asarray(image)
        assert np.array_equal(written, np.stack(random_arrays).max(axis=0))
        assert "frames=6" in capsys.readouterr().out

    def test_job_file(self, tmp_path, frame_dir, random_arrays):
        out = tmp_path / "gradient.png"
        job = tmp_path / "job.json"
        job.write_text(
            json.dumps(
                {
                    "inputs": [str(frame_dir)],
                    "output": str(out),
                    "composite": {"mode": "time-gradient", "gradient": {"preset": "fire"}},
                }
            ),
            encoding="utf-8",
        )

        main(["run", "--job", str(job)])

        with Image.open(out) as image:
            assert image.size == (7, 5)
            assert image.mode == "RGB"

    def test_failed_run_writes_nothing(self, tmp_path, random_arrays):
        frames = tmp_path / "mixed"
        _write_frames(frames, random_arrays[:2])
        Image.fromarray(np.zeros((9, 9, 3), dtype=np.uint8)).save(frames / "frame_002.png")
        out = tmp_path / "never.png"

        with pytest.raises(SystemExit) as excinfo:
            main(["run", str(frames), "--output", str(out), "--resize-policy", "reject"])

        assert excinfo.value.code == 1
        assert not out.exists()
        assert list(tmp_path.glob(".never*")) == []

    def test_scale_to_first_accepts_mixed_sizes(self, tmp_path, random_arrays):
        frames = tmp_path / "mixed"
        _write_frames(frames, random_arrays[:2])
        Image.fromarray(np.zeros((10, 14, 3), dtype=np.uint8)).save(frames / "frame_002.png")
        out = tmp_path / "mixed.png"

        main(["run", str(frames), "--output", str(out), "--mode", "darken"])

        with Image.open(out) as image:
            assert np.all(np.asarray(image) == 0)


    def test_slices_masks_are_saved_beside_inputs(self, tmp_path, frame_dir, capsys):
        out = tmp_path / "slices.png"

        main(["run", str(frame_dir), "--output", str(out), "--mode", "slices", "--save-masks"])

        masks = sorted(path.name for path in frame_dir.glob("*_mask.png"))
        assert masks == [f"frame_{idx:03d}_mask.png" for idx in range(6)]
        with Image.open(frame_dir / "frame_000_mask.png") as image:
            assert image.mode == "L"
            assert image.size == (7, 5)

        main(["run", str(frame_dir), "--output", str(out), "--mode", "lighten"])
        assert "frames=6" in capsys.readouterr().out.splitlines()[-1]

    def test_job_mask_of_another_size_fails(self, tmp_path, random_arrays, capsys):
        _write_frames(tmp_path / "frames", random_arrays[:2])
        mask = tmp_path / "weights.png"
        Image.fromarray(np.zeros((3, 3), dtype=np.uint8)).save(mask)
        job = tmp_path / "job.json"
        job.write_text(
            json.dumps(
                {
                    "inputs": [
                        {"image": str(tmp_path / "frames" / "frame_000.png"), "mask": str(mask)},
                        str(tmp_path / "frames" / "frame_001.png"),
                    ],
                    "output": str(tmp_path / "masked.png"),
                    "composite": {"mode": "slices"},
                }
            ),
            encoding="utf-8",
        )

        with pytest.raises(SystemExit):
            main(["run", "--job", str(job)])

        assert "different dimensions" in capsys.readouterr().err
        assert not (tmp_path / "masked.png").exists()


class TestCheckAndExample:
    def test_example_files_are_numbered(self, tmp_path):
        main(["example", "--directory", str(tmp_path)])
        main(["example", "--directory", str(tmp_path)])

        first = json.loads((tmp_path / "example_job1.json").read_text(encoding="utf-8"))
        assert (tmp_path / "example_job2.json").exists()
        assert first["composite"]["mode"] == "time-gradient"
        assert len(first["inputs"]) == 4

    def test_example_fills_the_first_free_number(self, tmp_path):
        (tmp_path / "example_job1.json").write_text("{}", encoding="utf-8")
        (tmp_path / "example_job3.json").write_text("{}", encoding="utf-8")

        assert next_example_path(tmp_path) == tmp_path / "example_job2.json"

    def test_check_accepts_valid_job(self, tmp_path, frame_dir, capsys):
        job = tmp_path / "job.json"
        job.write_text(
            json.dumps({"inputs": [str(frame_dir)], "output": "x.png", "composite": {"mode": "average"}}),
            encoding="utf-8",
        )

        main(["check", str(job)])

        assert "check ok" in capsys.readouterr().out

    def test_check_rejects_unknown_mode(self, tmp_path, frame_dir, capsys):
        job = tmp_path / "job.json"
        job.write_text(
            json.dumps({"inputs": [str(frame_dir)], "output": "x.png", "composite": {"mode": "screen"}}),
            encoding="utf-8",
        )

        with pytest.raises(SystemExit):
            main(["check", str(job)])

        assert "Unknown mode 'screen'" in capsys.readouterr().err
