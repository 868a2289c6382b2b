"""Timestamp helpers."""

from __future__ import annotations

import pendulum


def utc_now() -> pendulum.DateTime:
    return pendulum.now("UTC")


def iso_timestamp(value: pendulum.DateTime | None = None) -> str:
    value = value or utc_now()
    return value.format("YYYY-MM-DD[T]HH:mm:ss[Z]")


def iso_date(value: pendulum.DateTime | None = None) -> str:
    value = value or utc_now()
    return value.format("YYYY-MM-DD")


def commit_stamp(value: pendulum.DateTime | None = None) -> str:
    value = value or utc_now()
    return value.format("YYYY-MM-DD HH:mm [UTC]")
