# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the brute-force and actor-critic selection models.
"""

import pytest

from tensorplan.config import PlannerConfig
from tensorplan.contraction import (
    ActorCriticModel,
    BruteForceModel,
    ComplexScaleSolution,
    HeuristicTable,
    SelectionModel,
    SelectionState,
    SolutionRegistry,
    StreamTimer,
    feature_key,
    model_for_algorithm,
    restrict_candidates,
)
from tensorplan.core import Algorithm, ContractionOpId, DataType
from tensorplan.errors import InvalidValueError, NoSupportedSolutionError
from tensorplan.runtime import get_current_device, problem_shape

from contraction_cases import make_descriptor


class FakeTimer:
    """Deterministic timer: looks up a time per type string."""

    def __init__(self, times, default=10.0):
        self.times = times
        self.default = default
        self.calls = []

    def __call__(self, solution, argument, workspace, stream):
        self.calls.append(solution.type_string)
        return self.times.get(solution.type_string, self.default)


def candidates_for(descriptor):
    registry = SolutionRegistry.instance()
    return registry, restrict_candidates(registry, registry.all_solutions().indices(), descriptor)


class TestBruteForce:
    """Tests for timed selection."""

    def test_picks_minimum(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        supported = [i for i in candidates if registry.solution(i).instance.dims == (2, 2, 2)]
        target = registry.solution(supported[3]).type_string

        model = BruteForceModel(timer=FakeTimer({target: 1.0}))
        result = model.select(registry, candidates, descriptor, 1 << 20, get_current_device())
        assert result.winner_index == supported[3]
        assert result.state == SelectionState.WINNER_CHOSEN
        assert result.metrics.avg_time_ms == 1.0
        assert result.metrics.instance == target

    def test_tie_goes_to_first(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        model = BruteForceModel(timer=FakeTimer({}, default=5.0))
        result = model.select(registry, candidates, descriptor, 1 << 20, get_current_device())
        assert result.winner_index == min(result.measurements)

    def test_deterministic(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        times = {registry.solution(i).type_string: float(len(registry.solution(i).type_string) % 7) for i in candidates}
        winners = {
            BruteForceModel(timer=FakeTimer(times))
            .select(registry, candidates, descriptor, 1 << 20, get_current_device())
            .winner_index
            for _ in range(3)
        }
        assert len(winners) == 1

    def test_skips_unsupported(self):
        """Only the shape-compatible dimensionality class is timed."""
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        timer = FakeTimer({})
        result = BruteForceModel(timer=timer).select(
            registry, candidates, descriptor, 1 << 20, get_current_device()
        )
        for index in result.measurements:
            assert registry.solution(index).instance.dims == (2, 2, 2)
        assert len(timer.calls) == len(result.measurements) < len(candidates)

    def test_skips_oversized_workspace(self):
        """With no workspace offered, split-K candidates are not timed."""
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        result = BruteForceModel(timer=FakeTimer({})).select(
            registry, candidates, descriptor, 0, get_current_device()
        )
        for index in result.measurements:
            assert registry.solution(index).instance.k_batch == 1

    def test_frees_buffers(self):
        device = get_current_device()
        descriptor = make_descriptor(DataType.C_32F)
        registry, candidates = candidates_for(descriptor)
        BruteForceModel(timer=FakeTimer({})).select(registry, candidates, descriptor, 1 << 20, device)
        assert device.memory.live_allocations == 0

    def test_frees_buffers_on_timer_failure(self):
        device = get_current_device()
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)

        def failing_timer(solution, argument, workspace, stream):
            raise RuntimeError("device lost")

        with pytest.raises(RuntimeError):
            BruteForceModel(timer=failing_timer).select(registry, candidates, descriptor, 0, device)
        assert device.memory.live_allocations == 0

    def test_none_supported(self):
        descriptor = make_descriptor()
        registry = SolutionRegistry.instance()
        # 1-D kernels only: none can run the 2x2x2 problem
        candidates = [
            i
            for i in restrict_candidates(registry, registry.all_solutions().indices(), descriptor)
            if registry.solution(i).instance.dims == (1, 1, 1)
        ]
        with pytest.raises(NoSupportedSolutionError):
            BruteForceModel(timer=FakeTimer({})).select(
                registry, candidates, descriptor, 1 << 20, get_current_device()
            )

    def test_empty_candidates(self):
        with pytest.raises(NoSupportedSolutionError):
            BruteForceModel(timer=FakeTimer({})).select(
                SolutionRegistry.instance(), [], make_descriptor(), 0, get_current_device()
            )

    def test_default_timer_runs(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        result = BruteForceModel().select(registry, candidates, descriptor, 1 << 20, get_current_device())
        assert result.metrics.avg_time_ms >= 0.0
        assert result.metrics.tflops >= 0.0

    def test_patient_uses_more_repeats(self):
        config = PlannerConfig(default_repeats=1, patient_repeats=10, patient_warmup=3)
        default = BruteForceModel(config=config)
        patient = BruteForceModel(patient=True, config=config)
        assert isinstance(patient.timer, StreamTimer)
        assert patient.timer.repeats == 10
        assert patient.timer.warmup == 3
        assert default.timer.repeats == 1
        assert patient.algorithm == Algorithm.DEFAULT_PATIENT


class TestActorCritic:
    """Tests for heuristic selection."""

    def test_pure_function(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        device = get_current_device()
        winners = {
            ActorCriticModel().select(registry, candidates, descriptor, None, device).winner_index
            for _ in range(5)
        }
        assert len(winners) == 1

    def test_no_device_work(self):
        device = get_current_device()
        descriptor = make_descriptor(DataType.C_32F)
        registry, candidates = candidates_for(descriptor)
        before = device.default_stream.launch_count
        ActorCriticModel().select(registry, candidates, descriptor, None, device)
        assert device.memory.peak_allocated_bytes == 0
        assert device.default_stream.launch_count == before

    def test_scores_supported_only(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        result = ActorCriticModel().select(registry, candidates, descriptor, None, get_current_device())
        assert result.state == SelectionState.WINNER_CHOSEN
        assert result.winner_index in result.scores
        for index in result.scores:
            assert registry.solution(index).instance.dims == (2, 2, 2)
        assert result.scores[result.winner_index] == max(result.scores.values())

    def test_table_overrides_analytic(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        shape = problem_shape(descriptor.a, descriptor.b, descriptor.d)
        key = feature_key(descriptor, shape)
        supported = [i for i in candidates if registry.solution(i).instance.dims == (2, 2, 2)]
        chosen = supported[-1]

        table = HeuristicTable()
        table.record(key, registry.solution(chosen).type_string, 100.0)
        result = ActorCriticModel(table).select(registry, candidates, descriptor, None, get_current_device())
        assert result.winner_index == chosen

    def test_workspace_limit(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        result = ActorCriticModel().select(registry, candidates, descriptor, 0, get_current_device())
        for index in result.scores:
            assert registry.solution(index).instance.k_batch == 1

    def test_none_supported(self):
        descriptor = make_descriptor()
        registry, candidates = candidates_for(descriptor)
        candidates = [i for i in candidates if registry.solution(i).instance.dims == (1, 1, 1)]
        with pytest.raises(NoSupportedSolutionError):
            ActorCriticModel().select(registry, candidates, descriptor, None, get_current_device())


class TestHeuristicTable:
    """Tests for table persistence."""

    def test_save_load(self, tmp_path):
        table = HeuristicTable()
        key = ("BILINEAR", ("R_32F",) * 4, (2, 2, 2), 32, 16, 16)
        table.record(key, "kernel<1>", 0.75)
        path = tmp_path / "table.json"
        table.save(path)

        loaded = HeuristicTable.load(path)
        assert len(loaded) == 1
        assert loaded.lookup(key, "kernel<1>") == 0.75
        assert loaded.lookup(key, "kernel<2>") is None

    def test_feature_key_rounds_to_powers_of_two(self):
        descriptor = make_descriptor()
        shape = problem_shape(descriptor.a, descriptor.b, descriptor.d)
        key = feature_key(descriptor, shape)
        assert key[2] == (2, 2, 2)
        assert key[3:] == (32, 16, 16)


class TestModelForAlgorithm:
    """Tests for algorithm dispatch."""

    def test_default(self):
        model = model_for_algorithm(Algorithm.DEFAULT)
        assert isinstance(model, BruteForceModel)
        assert not model.patient

    def test_patient(self):
        model = model_for_algorithm(Algorithm.DEFAULT_PATIENT)
        assert isinstance(model, BruteForceModel)
        assert model.patient

    def test_actor_critic(self):
        assert isinstance(model_for_algorithm(Algorithm.ACTOR_CRITIC), ActorCriticModel)

    def test_integer_value(self):
        assert isinstance(model_for_algorithm(-8), ActorCriticModel)

    def test_invalid(self):
        with pytest.raises(InvalidValueError):
            model_for_algorithm(-3)

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            SelectionModel()


class TestUnrestrictedCandidates:
    """Selection over the whole registry, without restricting by signature first."""

    @pytest.mark.parametrize("dtype", [DataType.C_32F, DataType.C_64F])
    def test_actor_critic_complex_scale(self, dtype):
        registry = SolutionRegistry.instance()
        descriptor = make_descriptor(dtype, bilinear=False)
        result = ActorCriticModel().select(
            registry, registry.all_solutions().indices(), descriptor, None, get_current_device()
        )
        assert isinstance(result.solution, ComplexScaleSolution)
        assert result.solution.signature == descriptor.signature

    def test_brute_force_complex_scale(self):
        device = get_current_device()
        registry = SolutionRegistry.instance()
        descriptor = make_descriptor(DataType.C_32F, bilinear=False)
        timer = FakeTimer({})
        result = BruteForceModel(timer=timer).select(
            registry, registry.all_solutions().indices(), descriptor, 1 << 20, device
        )
        assert isinstance(result.solution, ComplexScaleSolution)
        assert all(name.startswith("complex_c_32f") for name in timer.calls)
        assert device.memory.live_allocations == 0

    def test_actor_critic_real_scale(self):
        registry = SolutionRegistry.instance()
        descriptor = make_descriptor(DataType.R_32F, bilinear=False)
        result = ActorCriticModel().select(
            registry, registry.all_solutions().indices(), descriptor, None, get_current_device()
        )
        assert result.solution.op == ContractionOpId.SCALE
        assert result.solution.signature == descriptor.signature
