"""Identical oscillators are told apart by where their outputs go."""

from patch_reconcile import ModuleState, PatchGraph, graph_to_dot, reconcile_patch


def cable(module: str) -> dict[str, str]:
    return {"type": "cable", "module": module, "port": "output"}


current = PatchGraph(
    modules=[
        ModuleState(id="sine-1", module_type="sine", params={"freq": 220.0}),
        ModuleState(id="sine-2", module_type="sine", params={"freq": 220.0}),
        ModuleState(id="lpf-1", module_type="lpf", params={"input": cable("sine-1"), "cutoff": 800.0}),
        ModuleState(id="delay-1", module_type="delay", params={"input": cable("sine-2"), "time": 0.25}),
    ]
)

desired = PatchGraph(
    modules=[
        ModuleState(id="sine-1", module_type="sine", params={"freq": 220.0}),
        ModuleState(id="sine-2", module_type="sine", params={"freq": 220.0}),
        ModuleState(id="sine-3", module_type="sine", params={"freq": 220.0}),
        ModuleState(id="delay-1", module_type="delay", params={"input": cable("sine-2"), "time": 0.3}),
        ModuleState(id="lpf-1", module_type="lpf", params={"input": cable("sine-3"), "cutoff": 900.0}),
    ]
)

if __name__ == "__main__":
    result = reconcile_patch(desired, current)
    print(f"remap: {result.module_id_remap}")
    print()
    print(graph_to_dot(desired, remap=result.module_id_remap, name="cloned_oscillators"))
