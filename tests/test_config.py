"""Config loading and validation."""

import json

import pytest

from timestack.config.loader import (
    composite_config_from_dict,
    example_job_payload,
    job_config_from_dict,
    load_composite_config,
    load_job_config,
    validate_config,
    validate_job,
)
from timestack.config.schema import CompositeConfig, GradientConfig, JobConfig, SliceConfig
from timestack.errors import InvalidConfigError, UnknownModeError
from timestack.pipeline.modes import Mode


class TestFromDict:
    def test_nested_options(self):
        config = composite_config_from_dict(
            {
                "mode": "time-gradient",
                "gradient": {"stops": [[0, [1, 0, 0]], [1, [0, 0, 1]]]},
                "channel_weights": [1, 2, 3],
                "slices": {"shape": "horizontal-flat"},
                "thread_count": 2,
            }
        )

        assert config.mode == "time-gradient"
        assert config.gradient.stops == ((0.0, (1, 0, 0)), (1.0, (0, 0, 1)))
        assert config.channel_weights == (1.0, 2.0, 3.0)
        assert config.slices == SliceConfig(shape="horizontal-flat")
        assert config.thread_count == 2

    def test_empty_dict_gives_defaults(self):
        assert composite_config_from_dict({}) == CompositeConfig()

    def test_unknown_key(self):
        with pytest.raises(InvalidConfigError):
            composite_config_from_dict({"blend": "screen"})

    @pytest.mark.parametrize("weights", [[1, "bright", 2], 3])
    def test_malformed_channel_weights(self, weights):
        with pytest.raises(InvalidConfigError, match="channel_weights"):
            composite_config_from_dict({"ranking": "weighted", "channel_weights": weights})

    def test_job_requires_inputs_and_output(self):
        with pytest.raises(InvalidConfigError):
            job_config_from_dict({"output": "out.png"})
        with pytest.raises(InvalidConfigError):
            job_config_from_dict({"inputs": ["a.png"]})

    def test_example_payload_round_trips(self):
        payload = json.loads(json.dumps(example_job_payload(["a.png", "b.png"])))

        job = job_config_from_dict(payload)

        assert job.inputs == ["a.png", "b.png"]
        assert job.output == "stacked.png"
        assert job.composite.mode == "time-gradient"
        validate_config(job.composite)


class TestValidate:
    def test_returns_parsed_mode(self):
        assert validate_config(CompositeConfig(mode="darken")) is Mode.DARKEN

    @pytest.mark.parametrize(
        "overrides, option",
        [
            ({"mode": "screen"}, "mode"),
            ({"resize_policy": "stretch"}, "resize policy"),
            ({"resample": "lanczos"}, "resample"),
            ({"parallelism": "gpu"}, "parallelism"),
            ({"ranking": "saturation"}, "ranking"),
            ({"comparison": "less"}, "comparison"),
            ({"slices": SliceConfig(shape="diagonal")}, "slice shape"),
        ],
    )
    def test_unknown_choices(self, overrides, option):
        with pytest.raises(UnknownModeError) as excinfo:
            validate_config(CompositeConfig(**overrides))

        assert excinfo.value.option == option

    @pytest.mark.parametrize(
        "overrides",
        [
            {"thread_count": 0},
            {"frame_batch_size": 0},
            {"tint_strength": 1.5},
            {"slices": SliceConfig(k=0.0)},
            {"ranking": "weighted"},
        ],
    )
    def test_out_of_range_values(self, overrides):
        with pytest.raises(InvalidConfigError):
            validate_config(CompositeConfig(**overrides))

    def test_gradient_is_checked_only_for_time_gradient(self):
        bad = GradientConfig(preset="nope")

        validate_config(CompositeConfig(mode="lighten", gradient=bad))
        with pytest.raises(UnknownModeError):
            validate_config(CompositeConfig(mode="time-gradient", gradient=bad))


class TestLoadFiles:
    def test_job_from_json(self, tmp_path):
        path = tmp_path / "job.json"
        path.write_text(
            json.dumps({"inputs": ["a.png"], "output": "out.png", "composite": {"mode": "average"}}),
            encoding="utf-8",
        )

        job = load_job_config(str(path))

        assert job.inputs == ["a.png"]
        assert job.composite.mode == "average"

    def test_missing_job_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_job_config(str(tmp_path / "missing.json"))

    def test_job_from_python_reference(self, tmp_path):
        module = tmp_path / "my_job.py"
        module.write_text(
            "from timestack.config.schema import CompositeConfig, JobConfig\n"
            "JOB = JobConfig(inputs=['x.png'], output='y.png', composite=CompositeConfig(mode='darken'))\n",
            encoding="utf-8",
        )

        job = load_job_config(f"{module}:JOB")

        assert isinstance(job, JobConfig)
        assert load_composite_config(f"{module}:JOB").mode == "darken"

    def test_reference_of_wrong_type(self, tmp_path):
        module = tmp_path / "not_a_job.py"
        module.write_text("VALUE = 3\n", encoding="utf-8")

        with pytest.raises(TypeError):
            load_job_config(f"{module}:VALUE")

    def test_composite_from_job_shaped_json(self, tmp_path):
        path = tmp_path / "job.json"
        path.write_text(
            json.dumps({"inputs": [], "output": "o.png", "composite": {"mode": "slices"}}),
            encoding="utf-8",
        )

        assert load_composite_config(str(path)).mode == "slices"

    def test_default_composite_config(self):
        assert load_composite_config(None) == CompositeConfig()


class TestJobMasks:
    def test_inputs_may_carry_masks(self):
        job = job_config_from_dict(
            {
                "inputs": ["a.png", {"image": "b.png", "mask": "b_weights.png"}, {"image": "c.png"}],
                "output": "out.png",
                "masks": {"a.png": "a_weights.png"},
            }
        )

        assert job.inputs == ["a.png", "b.png", "c.png"]
        assert job.masks == {"a.png": "a_weights.png", "b.png": "b_weights.png"}

    @pytest.mark.parametrize("inputs", [[{"mask": "m.png"}], [3]])
    def test_malformed_input_entries(self, inputs):
        with pytest.raises(InvalidConfigError):
            job_config_from_dict({"inputs": inputs, "output": "out.png"})

    def test_masks_need_slices_mode(self, tmp_path):
        mask = tmp_path / "m.png"
        mask.write_bytes(b"")
        job = JobConfig(inputs=["a.png"], output="o.png", masks={"a.png": str(mask)})

        with pytest.raises(InvalidConfigError, match="slices"):
            validate_job(job)

        job.composite = CompositeConfig(mode="slices")
        assert validate_job(job) is Mode.SLICES

    def test_missing_mask_file(self, tmp_path):
        job = JobConfig(
            inputs=["a.png"],
            output="o.png",
            composite=CompositeConfig(mode="slices"),
            masks={"a.png": str(tmp_path / "gone.png")},
        )

        with pytest.raises(FileNotFoundError):
            validate_job(job)
