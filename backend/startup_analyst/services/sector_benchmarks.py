"""
Sector Benchmarks

Static table of the 12 supported sectors with real-world example companies and
per-category scoring guidance, loaded from data/sector_benchmarks.json. The
scoring prompt embeds the guidance for the classified sector.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from ..utils.prompt_templates import render_prompt

BENCHMARKS_PATH = Path(__file__).resolve().parent.parent / "data" / "sector_benchmarks.json"

DEFAULT_SECTOR = "B2B SaaS"


@dataclass(frozen=True)
class BenchmarkExample:
    company: str
    stage: str
    key_metrics: str


@dataclass(frozen=True)
class SectorBenchmark:
    name: str
    category: str
    examples: Tuple[BenchmarkExample, ...]
    team: Tuple[str, ...]
    market: Tuple[str, ...]
    product: Tuple[str, ...]
    traction: Tuple[str, ...]
    financial: Tuple[str, ...]
    competitive: Tuple[str, ...]


def load_benchmarks(path: Path = BENCHMARKS_PATH) -> Dict[str, SectorBenchmark]:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    benchmarks = {}
    for name, entry in raw.items():
        benchmarks[name] = SectorBenchmark(
            name=name,
            category=entry["category"],
            examples=tuple(BenchmarkExample(**example) for example in entry["examples"]),
            team=tuple(entry["team"]),
            market=tuple(entry["market"]),
            product=tuple(entry["product"]),
            traction=tuple(entry["traction"]),
            financial=tuple(entry["financial"]),
            competitive=tuple(entry["competitive"]),
        )
    return benchmarks


SECTOR_BENCHMARKS = load_benchmarks()

# Enumeration order matches the data file
SECTORS: Tuple[str, ...] = tuple(SECTOR_BENCHMARKS)


def get_all_sectors() -> List[str]:
    return list(SECTORS)


def get_sector_benchmark(sector: str) -> SectorBenchmark:
    """Benchmarks for a sector tag; unknown tags get the default sector's table"""
    return SECTOR_BENCHMARKS.get(sector, SECTOR_BENCHMARKS[DEFAULT_SECTOR])


def format_benchmark_guidance(benchmark: SectorBenchmark) -> str:
    examples = "\n".join(
        f"{index}. {example.company} ({example.stage}): {example.key_metrics}"
        for index, example in enumerate(benchmark.examples, start=1)
    )
    return render_prompt(
        "benchmark_guidance",
        sector=benchmark.name,
        examples=examples,
        team="\n".join(benchmark.team),
        market="\n".join(benchmark.market),
        product="\n".join(benchmark.product),
        traction="\n".join(benchmark.traction),
        financial="\n".join(benchmark.financial),
        competitive="\n".join(benchmark.competitive),
    )
