"""
Import every public module of instance-registry and exercise one round trip.

Usage (from repository root, after ``pip install -e .``):
  python scripts/smoke_import.py
"""
import importlib

MODULES = [
    "instance_registry",
    "instance_registry.config",
    "instance_registry.exceptions",
    "instance_registry.registry",
    "instance_registry.instance",
    "instance_registry.dispatch",
    "instance_registry.dispatch.manager",
    "instance_registry.dispatch.models",
]


def main() -> None:
    for name in MODULES:
        importlib.import_module(name)
        print(f"[OK] import {name}")

    from instance_registry import DispatchManager, DispatchRequest, InstanceRegistry, RegisteredInstance, operation

    class Echo(RegisteredInstance):
        @operation
        def echo(self, value):
            return value

    registry = InstanceRegistry()
    echo = Echo(registry=registry)
    result = DispatchManager(registry=registry).handle(
        DispatchRequest(instance_id=echo.instance_id, operation="echo", args=["ping"])
    )
    if result.value != "ping":
        raise SystemExit(f"Dispatch round trip failed: {result}")
    print("[OK] dispatch round trip")


if __name__ == "__main__":
    main()
