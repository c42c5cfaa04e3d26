from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

_ENV_NAME_KEY = "SIGNAL_BACKTESTER_ENV"
_BACKTEST_CONFIG_PATH_KEY = "SIGNAL_BACKTESTER_BACKTEST_CONFIG"
_ALLOWED_ENVS = ("dev", "prod", "test")

_RISK_PERCENT_DEFAULT = 2.0
_REWARD_PERCENT_DEFAULT = 5.0
_INITIAL_CAPITAL_DEFAULT = 10000.0
_ITERATIONS_DEFAULT = 10
_CANDLES_PER_ITERATION_DEFAULT = 200

_EXIT_LOOKAHEAD_BARS_DEFAULT = 100
_TIME_EXIT_BARS_DEFAULT = 50
_MIN_WARMUP_BARS_DEFAULT = 10


@dataclass(frozen=True, slots=True)
class BacktestRunRuntimeConfig:
    """
    Request defaults loaded from `backtest.run` section.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - configs/dev/backtest.yaml
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - src/signal_backtester/wiring/backtest.py
    """

    risk_percent: float = _RISK_PERCENT_DEFAULT
    reward_percent: float = _REWARD_PERCENT_DEFAULT
    initial_capital: float = _INITIAL_CAPITAL_DEFAULT
    iterations: int = _ITERATIONS_DEFAULT
    candles_per_iteration: int = _CANDLES_PER_ITERATION_DEFAULT

    def __post_init__(self) -> None:
        """
        Validate run defaults with fail-fast startup semantics.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Percent fields use human percent units (`2.0 == 2%`).
        Raises:
            ValueError: If one scalar default is out of range.
        Side Effects:
            None.
        """
        if self.risk_percent <= 0.0 or self.risk_percent >= 100.0:
            raise ValueError("backtest.run.risk_percent must be in (0, 100)")
        if self.reward_percent <= 0.0:
            raise ValueError("backtest.run.reward_percent must be > 0")
        if self.initial_capital <= 0.0:
            raise ValueError("backtest.run.initial_capital must be > 0")
        if self.iterations <= 0:
            raise ValueError("backtest.run.iterations must be > 0")
        if self.candles_per_iteration <= 0:
            raise ValueError("backtest.run.candles_per_iteration must be > 0")


@dataclass(frozen=True, slots=True)
class BacktestSimulationRuntimeConfig:
    """
    Trade simulator knobs loaded from `backtest.simulation` section.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - configs/dev/backtest.yaml
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
    """

    exit_lookahead_bars: int = _EXIT_LOOKAHEAD_BARS_DEFAULT
    time_exit_bars: int = _TIME_EXIT_BARS_DEFAULT
    min_warmup_bars: int = _MIN_WARMUP_BARS_DEFAULT

    def __post_init__(self) -> None:
        if self.exit_lookahead_bars <= 0:
            raise ValueError("backtest.simulation.exit_lookahead_bars must be > 0")
        if self.time_exit_bars <= 0:
            raise ValueError("backtest.simulation.time_exit_bars must be > 0")
        if self.min_warmup_bars < 0:
            raise ValueError("backtest.simulation.min_warmup_bars must be >= 0")


@dataclass(frozen=True, slots=True)
class BacktestRuntimeConfig:
    """
    Root runtime config for the signal backtest engine.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - configs/dev/backtest.yaml
      - configs/test/backtest.yaml
      - configs/prod/backtest.yaml
    """

    version: int
    run: BacktestRunRuntimeConfig = field(default_factory=BacktestRunRuntimeConfig)
    simulation: BacktestSimulationRuntimeConfig = field(
        default_factory=BacktestSimulationRuntimeConfig
    )

    def __post_init__(self) -> None:
        """
        Validate runtime config invariants for fail-fast startup behavior.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Version remains fixed to `1`.
        Raises:
            ValueError: If version is not 1 or one section is missing.
        Side Effects:
            None.
        """
        if self.version != 1:
            raise ValueError(f"backtest config version must be 1, got {self.version!r}")
        if self.run is None:  # type: ignore[truthy-bool]
            raise ValueError("backtest.run section must be configured")
        if self.simulation is None:  # type: ignore[truthy-bool]
            raise ValueError("backtest.simulation section must be configured")


def resolve_backtest_config_path(
    *,
    environ: Mapping[str, str],
) -> Path:
    """
    Resolve runtime config path using env override precedence contract.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - configs/dev/backtest.yaml
      - configs/test/backtest.yaml
      - configs/prod/backtest.yaml

    Args:
        environ: Runtime environment mapping.
    Returns:
        Path: Resolved `backtest.yaml` path.
    Assumptions:
        Precedence is `SIGNAL_BACKTESTER_BACKTEST_CONFIG` >
        `configs/<SIGNAL_BACKTESTER_ENV>/backtest.yaml`.
    Raises:
        ValueError: If `SIGNAL_BACKTESTER_ENV` value is unsupported.
    Side Effects:
        None.
    """
    override_path = environ.get(_BACKTEST_CONFIG_PATH_KEY, "").strip()
    if override_path:
        return Path(override_path)

    env_name = _resolve_env_name(environ=environ)
    return Path("configs") / env_name / "backtest.yaml"


def load_backtest_runtime_config(path: str | Path) -> BacktestRuntimeConfig:
    """
    Load and validate source-of-truth backtest runtime YAML configuration.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - configs/dev/backtest.yaml
      - src/signal_backtester/wiring/backtest.py
      - tests/unit/contexts/backtest/adapters/test_backtest_runtime_config.py

    Args:
        path: Path to `backtest.yaml`.
    Returns:
        BacktestRuntimeConfig: Parsed validated config object.
    Assumptions:
        Missing scalar keys fallback to documented defaults; only `version` is required.
    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If YAML shape or values are invalid.
    Side Effects:
        Reads one UTF-8 YAML file from filesystem.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"backtest config not found: {config_path}")

    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError("backtest config must be mapping at top-level")

    version = _get_int(payload, "version", required=True)
    backtest_map = _get_mapping(payload, "backtest", required=False)
    run_map = _get_mapping(backtest_map, "run", required=False)
    simulation_map = _get_mapping(backtest_map, "simulation", required=False)

    run = BacktestRunRuntimeConfig(
        risk_percent=_get_float_with_default(
            run_map, "risk_percent", default=_RISK_PERCENT_DEFAULT
        ),
        reward_percent=_get_float_with_default(
            run_map, "reward_percent", default=_REWARD_PERCENT_DEFAULT
        ),
        initial_capital=_get_float_with_default(
            run_map, "initial_capital", default=_INITIAL_CAPITAL_DEFAULT
        ),
        iterations=_get_int_with_default(run_map, "iterations", default=_ITERATIONS_DEFAULT),
        candles_per_iteration=_get_int_with_default(
            run_map,
            "candles_per_iteration",
            default=_CANDLES_PER_ITERATION_DEFAULT,
        ),
    )
    simulation = BacktestSimulationRuntimeConfig(
        exit_lookahead_bars=_get_int_with_default(
            simulation_map,
            "exit_lookahead_bars",
            default=_EXIT_LOOKAHEAD_BARS_DEFAULT,
        ),
        time_exit_bars=_get_int_with_default(
            simulation_map,
            "time_exit_bars",
            default=_TIME_EXIT_BARS_DEFAULT,
        ),
        min_warmup_bars=_get_int_with_default(
            simulation_map,
            "min_warmup_bars",
            default=_MIN_WARMUP_BARS_DEFAULT,
        ),
    )
    return BacktestRuntimeConfig(version=version, run=run, simulation=simulation)


def build_backtest_runtime_config_hash(*, config: BacktestRuntimeConfig) -> str:
    """
    Build deterministic SHA-256 hash of result-affecting runtime settings.

    Args:
        config: Parsed runtime config object.
    Returns:
        str: Canonical hex digest.
    Assumptions:
        Every section of this config affects results, so all of it is hashed.
    Raises:
        None.
    Side Effects:
        None.
    """
    payload = {
        "version": config.version,
        "backtest": {
            "run": {
                "risk_percent": config.run.risk_percent,
                "reward_percent": config.run.reward_percent,
                "initial_capital": config.run.initial_capital,
                "iterations": config.run.iterations,
                "candles_per_iteration": config.run.candles_per_iteration,
            },
            "simulation": {
                "exit_lookahead_bars": config.simulation.exit_lookahead_bars,
                "time_exit_bars": config.simulation.time_exit_bars,
                "min_warmup_bars": config.simulation.min_warmup_bars,
            },
        },
    }
    canonical_json = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def _resolve_env_name(*, environ: Mapping[str, str]) -> str:
    """
    Resolve normalized runtime environment name for fallback path generation.

    Args:
        environ: Runtime environment mapping.
    Returns:
        str: One of `dev`, `prod`, or `test`.
    Assumptions:
        Missing `SIGNAL_BACKTESTER_ENV` defaults to `dev`.
    Raises:
        ValueError: If runtime env value is unsupported.
    Side Effects:
        None.
    """
    raw_env_name = environ.get(_ENV_NAME_KEY, "dev").strip().lower()
    if raw_env_name not in _ALLOWED_ENVS:
        raise ValueError(
            f"{_ENV_NAME_KEY} must be one of {_ALLOWED_ENVS}, got {raw_env_name!r}"
        )
    return raw_env_name


def _get_mapping(data: Mapping[str, Any], key: str, *, required: bool) -> Mapping[str, Any]:
    """
    Read nested mapping from YAML payload.

    Args:
        data: Source mapping.
        key: Mapping key.
        required: Whether key is mandatory.
    Returns:
        Mapping[str, Any]: Nested mapping or empty mapping.
    Assumptions:
        Optional missing mapping sections are represented as empty mapping.
    Raises:
        ValueError: If required key missing or value is not mapping.
    Side Effects:
        None.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"expected mapping at key '{key}', got {type(value).__name__}")
    return value


def _get_int(data: Mapping[str, Any], key: str, *, required: bool) -> int:
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected int at key '{key}', got {type(value).__name__}")
    return value


def _get_int_with_default(data: Mapping[str, Any], key: str, *, default: int) -> int:
    if key not in data:
        return default
    return _get_int(data, key, required=True)


def _get_float(data: Mapping[str, Any], key: str, *, required: bool) -> float:
    """
    Read float-compatible numeric value from payload while rejecting bools.

    Args:
        data: Source mapping.
        key: Numeric key name.
        required: Whether key is mandatory.
    Returns:
        float: Parsed floating-point value.
    Assumptions:
        Integer values are accepted and converted to float.
    Raises:
        ValueError: If required value is missing or type is invalid.
    Side Effects:
        None.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {key}")
        return 0.0
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"expected float at key '{key}', got {type(value).__name__}")
    return float(value)


def _get_float_with_default(data: Mapping[str, Any], key: str, *, default: float) -> float:
    if key not in data:
        return default
    return _get_float(data, key, required=True)


__all__ = [
    "BacktestRunRuntimeConfig",
    "BacktestRuntimeConfig",
    "BacktestSimulationRuntimeConfig",
    "build_backtest_runtime_config_hash",
    "load_backtest_runtime_config",
    "resolve_backtest_config_path",
]
