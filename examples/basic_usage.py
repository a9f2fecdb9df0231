#!/usr/bin/env python3
"""Declaring triggers with the decorator API.

This demonstrates:

* declaring parameters and functions of several kinds
* printing the manifest the deploy tooling would discover
* building the ASGI app (serve it with any ASGI server, e.g. ``uvicorn basic_usage:app``)

Run ``cloud-triggers manifest examples/basic_usage.py -o -`` to see that scanning
this file statically produces the same manifest.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from cloud_triggers import CallableRequest, CloudEvent, Firebase, define_int, define_secret
from cloud_triggers.manifest import render_manifest
from cloud_triggers.options import CallableOptions, GlobalOptions, MaxInstances

MAX_WORKERS = define_int("MAX_WORKERS", default=10)
STRIPE_KEY = define_secret("STRIPE_KEY")

firebase = Firebase()


@firebase.https.on_call("checkout", options=CallableOptions(secrets=[STRIPE_KEY]))
def checkout(request: CallableRequest):
    return {"items": len((request.data or {}).get("items", []))}


@firebase.pubsub.on_message_published(
    "orders-created",
    options=GlobalOptions(max_instances=MaxInstances.param(MAX_WORKERS)),
)
def on_order(event: CloudEvent):
    print(f"order event {event.id}")


@firebase.firestore.on_document_written("carts/{cartId}")
def on_cart(event: CloudEvent):
    print(f"cart {event.params['cartId']} changed")


@firebase.scheduler.on_schedule("every day 03:00")
def nightly(event):
    print(f"nightly job {event.job_name}")


app = firebase.create_app()


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the manifest of the example functions.")
    parser.add_argument("--format", choices=["yaml", "json"], default="yaml")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    print(render_manifest(firebase.manifest(), args.format), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
