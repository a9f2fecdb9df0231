"""Unit tests for option values and option containers."""

from __future__ import annotations

import pytest

from cloud_triggers.options import (
    Conditional,
    Cpu,
    HttpsOptions,
    Ingress,
    IngressSetting,
    Invoker,
    Literal,
    MaxInstances,
    Memory,
    MemoryOption,
    MinInstances,
    ParamReference,
    Region,
    Reset,
    RetryConfig,
    RetryCount,
    ScheduleOptions,
    SupportedRegion,
    as_option,
    option_parts,
    render_option,
)
from cloud_triggers.params import define_boolean, define_int, define_secret


def test_render_option_values() -> None:
    assert render_option(Literal(512)) == 512
    assert render_option(ParamReference("MIN_MEM")) == "{{ params.MIN_MEM }}"
    assert render_option(Conditional("IS_PROD", 2, 0)) == "{{ params.IS_PROD ? 2 : 0 }}"
    assert (
        render_option(Conditional("IS_PROD", "ALLOW_ALL", True))
        == '{{ params.IS_PROD ? "ALLOW_ALL" : true }}'
    )
    assert render_option(Reset()) is None


def test_constructors_normalize_literals() -> None:
    assert Memory(MemoryOption.GB_1).value == Literal(1024)
    assert Memory(256) == Memory(MemoryOption.MB_256)
    assert Region(SupportedRegion.EUROPE_WEST1).value == Literal(["europe-west1"])
    assert Region(["us-east1", SupportedRegion.US_WEST1]).value == Literal(
        ["us-east1", "us-west1"]
    )
    assert Ingress(IngressSetting.ALLOW_ALL).value == Literal("ALLOW_ALL")
    assert Invoker.public().value == Literal(["public"])
    assert Invoker("service@example.iam").value == Literal(["service@example.iam"])
    assert Cpu.gcf_gen1().value == Literal("gcf_gen1")
    assert MaxInstances.reset().value == Reset()


def test_param_reference_keeps_the_param_but_compares_by_name() -> None:
    min_mem = define_int("MIN_MEM", default=512)
    memory = Memory.param(min_mem)

    assert memory.value == ParamReference("MIN_MEM")
    assert memory.value.param is min_mem


def test_option_parts_splits_endpoint_and_settings() -> None:
    min_mem = define_int("MIN_MEM", default=512)
    api_key = define_secret("API_KEY")

    parts = option_parts(
        HttpsOptions(
            memory=Memory.param(min_mem),
            labels={"team": "payments"},
            secrets=[api_key],
            invoker=Invoker.private(),
            cors=["https://app.example"],
        )
    )

    assert parts.endpoint == {
        "availableMemoryMb": ParamReference("MIN_MEM"),
        "labels": Literal({"team": "payments"}),
        "secretEnvironmentVariables": Literal(["API_KEY"]),
        "invoker": Literal(["private"]),
    }
    assert parts.settings == {"cors": ["https://app.example"]}
    assert parts.params == (min_mem, api_key)


def test_option_parts_nested_config_and_expressions() -> None:
    is_prod = define_boolean("IS_PROD", default=False)

    parts = option_parts(
        ScheduleOptions(
            min_instances=MinInstances.expression(is_prod.then_else(1, 0)),
            retry_config=RetryConfig(retry_count=RetryCount(3)),
        )
    )

    assert parts.endpoint == {"minInstances": Conditional("IS_PROD", 1, 0)}
    assert parts.settings == {"retryConfig": {"retryCount": Literal(3)}}
    assert parts.params == (is_prod,)


def test_option_parts_of_nothing() -> None:
    parts = option_parts(None)
    assert parts.endpoint == {}
    assert parts.settings == {}
    assert parts.params == ()


def test_plain_values_are_wrapped_by_field() -> None:
    parts = option_parts(
        ScheduleOptions(
            memory=512,
            region="us-east1",
            time_zone="UTC",
            retry_config=RetryConfig(retry_count=3),
        )
    )

    assert parts.endpoint == {
        "availableMemoryMb": Literal(512),
        "region": Literal(["us-east1"]),
    }
    assert parts.settings == {
        "timeZone": Literal("UTC"),
        "retryConfig": {"retryCount": Literal(3)},
    }
    assert as_option("memory", Memory(256)) == Memory(256)


def test_unusable_plain_value_names_the_field() -> None:
    with pytest.raises(TypeError, match="memory='lots'"):
        option_parts(HttpsOptions(memory="lots"))
