from __future__ import annotations

from typing import Any

import pytest

from patch_reconcile import PatchGraph


@pytest.fixture
def voice_data() -> dict[str, Any]:
    """Compiler JSON for a small voice: sine -> lowpass -> root, plus an explicit saw lead."""
    return {
        "modules": [
            {
                "id": "root",
                "moduleType": "mix",
                "params": {
                    "inputs": [
                        {"type": "cable", "module": "lpf-1", "port": "output"},
                        {"type": "cable", "module": "lead", "port": "output"},
                    ]
                },
            },
            {"id": "root_clock", "moduleType": "clock", "params": {"tempo": 120}},
            {"id": "sine-1", "moduleType": "sine", "params": {"freq": 220.0}},
            {
                "id": "lpf-1",
                "moduleType": "lpf",
                "params": {
                    "input": {"type": "cable", "module": "sine-1", "port": "output"},
                    "cutoff": 800.0,
                    "resonance": 0.2,
                },
            },
            {
                "id": "lead",
                "moduleType": "saw",
                "idIsExplicit": True,
                "params": {
                    "freq": 110.0,
                    "sync": {"type": "cable", "module": "root_clock", "port": "beat"},
                },
            },
        ],
        "scopes": [
            {"item": {"type": "ModuleOutput", "moduleId": "lpf-1", "portName": "output"}},
        ],
    }


@pytest.fixture
def voice_graph(voice_data: dict[str, Any]) -> PatchGraph:
    return PatchGraph.model_validate(voice_data)
