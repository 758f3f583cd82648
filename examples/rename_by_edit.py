"""An edited oscillator keeps its running instance although its generated ID changed."""

from patch_reconcile import PatchGraph, ReconcileOptions, reconcile_patch, with_remap_hints

current = PatchGraph.model_validate(
    {
        "modules": [
            {"id": "root", "moduleType": "mix", "params": {"inputs": [{"type": "cable", "module": "sine-1", "port": "output"}]}},
            {"id": "sine-1", "moduleType": "sine", "params": {"freq": 4.0}},
        ]
    }
)

# A new noise source was inserted before the sine, so the compiler renumbered it.
desired = PatchGraph.model_validate(
    {
        "modules": [
            {
                "id": "root",
                "moduleType": "mix",
                "params": {
                    "inputs": [
                        {"type": "cable", "module": "noise-1", "port": "output"},
                        {"type": "cable", "module": "sine-2", "port": "output"},
                    ]
                },
            },
            {"id": "noise-1", "moduleType": "noise", "params": {}},
            {"id": "sine-2", "moduleType": "sine", "params": {"freq": 4.05}},
        ]
    }
)

if __name__ == "__main__":
    result = reconcile_patch(desired, current, ReconcileOptions(debug_log=print))
    print()
    print(f"remap: {result.module_id_remap}")
    print(with_remap_hints(result).model_dump_json(by_alias=True, indent=2))
