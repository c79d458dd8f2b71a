"""
Parallel scree generation.

The manager prepares the grids shared by all polygons once per run, then
distributes the polygons to a fixed pool of worker threads. Workers claim
the next polygon from a shared counter, so the pool stays busy regardless
of polygon sizes. A failing worker sets an abort flag that the others check
before claiming their next polygon; the first error is re-raised after all
workers have finished.
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np
import structlog

from ..config import Settings
from ..config import settings as default_settings
from ..config.parameters import ScreeParameters
from ..utils.random import polygon_prng
from .errors import MissingInputError, ScreeError, ScreeGenerationError, ScreeMemoryError
from .fall_lines import GullyLine, gully_grid_cell_size
from .gradation_curve import GradationCurve
from .grids import GeoGrid, UpdateArea
from .scree_data import ScreeData
from .scree_generator import PolygonScree, ScreeGenerator, SharedGrids
from .stones import Stone

logger = structlog.get_logger()

# (polygons done, polygons total, items generated) -> False to cancel
ProgressCallback = Callable[[int, int, int], Optional[bool]]


@dataclass
class ScreeResult:
    """Outcome of a generation run."""
    stones: List[Stone] = field(default_factory=list)
    gully_lines: List[GullyLine] = field(default_factory=list)
    polygons_processed: int = 0
    polygons_total: int = 0
    generate_stones: bool = True
    cancelled: bool = False
    seconds: float = 0.0

    @property
    def item_count(self) -> int:
        """Stones, or gully lines if no stones were generated."""
        return len(self.stones) if self.generate_stones else len(self.gully_lines)

    def report(self) -> str:
        kind = "stones" if self.generate_stones else "lines"
        return (f"Number of {kind} generated: {self.item_count:,}\n"
                f"Time required: {self.seconds:,.1f} seconds")


def apply_gradation_curves(grid: GeoGrid, mask: GeoGrid, curve_1: GradationCurve,
                           curve_2: GradationCurve) -> None:
    """
    Tone map a grid with two curves blended by a grayscale mask, in place.

    White mask pixels select curve 1, black pixels curve 2. Nodes outside
    the mask use curve 1. Blended values are truncated to integers.
    """
    table_1 = curve_1.make_table()
    table_2 = curve_2.make_table()

    cs = grid.cell_size
    mask_cols = np.floor((grid.west + cs * np.arange(grid.cols) - mask.west) / mask.cell_size).astype(int)
    mask_rows = np.floor((mask.north - (grid.north - cs * np.arange(grid.rows))) / mask.cell_size).astype(int)
    valid_cols = (mask_cols >= 0) & (mask_cols < mask.cols)
    valid_rows = (mask_rows >= 0) & (mask_rows < mask.rows)

    w = np.ones(grid.values.shape)
    w[np.ix_(valid_rows, valid_cols)] = (
        mask.values[np.ix_(mask_rows[valid_rows], mask_cols[valid_cols])] / 255.0
    )

    v = np.clip(grid.values, 0, 255).astype(np.int64)
    grid.values[...] = np.trunc(w * table_1[v] + (1 - w) * table_2[v])


class ScreeGeneratorManager:
    """Runs scree generation for all polygons on a pool of threads."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._lock = threading.Lock()

    def prepare_grids(self, data: ScreeData, params: ScreeParameters) -> SharedGrids:
        """
        Resample and tone map the shading for stones and gully lines.

        The shading is resampled to the maximum stone diameter for stone
        placement, and to the gully search cell size for the line density.
        The line density grid is stored in ``data.line_density_grid``.

        Raises:
            MissingInputError: If no shading is loaded
        """
        if data.shading is None:
            raise MissingInputError("A shaded relief image is required to generate scree")

        shading = data.shading.resampled(params.stone_max_diameter)
        if data.gradation_mask is not None:
            apply_gradation_curves(shading, data.gradation_mask,
                                   params.shading_gradation_curve1, params.shading_gradation_curve2)
        else:
            params.shading_gradation_curve1.apply_to_grid(shading.values)
        min_shading, max_shading = shading.min_max()

        line_density = data.shading.resampled(gully_grid_cell_size(params))
        params.line_gradation_curve.apply_to_grid(line_density.values)
        data.line_density_grid = line_density

        logger.info("Shared grids prepared",
                    shading_cols=shading.cols, shading_rows=shading.rows,
                    line_cols=line_density.cols, line_rows=line_density.rows,
                    min_shading=min_shading, max_shading=max_shading)
        return SharedGrids(
            shading=shading,
            min_shading=min_shading,
            max_shading=max_shading,
            shading_to_dither=shading.copy(),
            line_density_1=line_density.copy(),
            line_density_2=line_density.copy(),
        )

    def generate_scree(self, data: ScreeData, params: ScreeParameters,
                       update_area: Optional[UpdateArea] = None,
                       generate_stones: bool = True,
                       progress: Optional[ProgressCallback] = None,
                       cancel_event: Optional[threading.Event] = None,
                       seed: Optional[int] = None,
                       max_workers: Optional[int] = None) -> ScreeResult:
        """
        Fill all polygons intersecting the update area with scree.

        Existing stones are removed, and existing gully lines unless they are
        fixed. New stones and lines are stored in ``data`` and returned.

        Args:
            data: Input grids and polygons, receives the output
            params: Generation parameters
            update_area: Only generate scree inside this box
            generate_stones: False to extract gully lines only
            progress: Called after each polygon, returns False to cancel
            cancel_event: Set to stop before the next polygon
            seed: Random seed, defaults to settings.random_seed
            max_workers: Number of threads, defaults to settings.max_workers

        Returns:
            ScreeResult with the generated stones and lines

        Raises:
            MissingInputError: If the shading, or the DEM for extracting
                gully lines, is missing
            ScreeGenerationError: If a worker or the progress callback failed
        """
        start_time = time.time()
        seed = self.settings.random_seed if seed is None else seed
        if max_workers is None:
            max_workers = self.settings.max_workers
        if not max_workers:
            max_workers = os.cpu_count() or 1
        cancel_event = cancel_event or threading.Event()

        if not data.fixed_scree_lines and data.dem is None:
            raise MissingInputError("A DEM is required to extract gully lines")

        polygons = [
            polygon for polygon in data.polygons
            if update_area is None or update_area.intersects(polygon.bounds)
        ]
        data.clear_output()
        grids = self.prepare_grids(data, params)

        run = _Run(
            generator=ScreeGenerator(params, data),
            polygons=polygons,
            grids=grids,
            seed=seed,
            update_area=update_area,
            generate_stones=generate_stones,
            isolate_grids=self.settings.isolate_dither_grids,
            progress=progress,
            cancel_event=cancel_event,
            lock=self._lock,
        )

        n_workers = max(1, min(max_workers, len(polygons)))
        logger.info("Starting scree generation", polygons=len(polygons),
                    workers=n_workers, generate_stones=generate_stones)

        with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="scree") as executor:
            futures = [executor.submit(run.work) for _ in range(n_workers)]
            for future in futures:
                future.result()

        if run.error is not None:
            raise run.error

        result = ScreeResult(
            polygons_processed=run.done,
            polygons_total=len(polygons),
            generate_stones=generate_stones,
            cancelled=cancel_event.is_set(),
        )
        for scree in run.results:
            if scree is None:
                continue
            result.stones.extend(scree.stones)
            if scree.extracted_lines:
                result.gully_lines.extend(scree.gully_lines)

        data.stones = result.stones
        if not data.fixed_scree_lines:
            data.gully_lines = result.gully_lines
        else:
            result.gully_lines = list(data.gully_lines)
        result.seconds = time.time() - start_time

        if result.cancelled:
            logger.warning("Scree generation cancelled", processed=run.done, total=len(polygons))
        logger.info("Scree generation finished", stones=len(result.stones),
                    lines=len(result.gully_lines), seconds=round(result.seconds, 2))
        return result


@dataclass
class _Run:
    """State shared by the workers of one run."""
    generator: ScreeGenerator
    polygons: list
    grids: SharedGrids
    seed: int
    update_area: Optional[UpdateArea]
    generate_stones: bool
    isolate_grids: bool
    progress: Optional[ProgressCallback]
    cancel_event: threading.Event
    lock: threading.Lock
    abort: threading.Event = field(default_factory=threading.Event)
    next_index: int = 0
    done: int = 0
    items: int = 0
    error: Optional[ScreeError] = None
    results: List[Optional[PolygonScree]] = field(default_factory=list)

    def __post_init__(self):
        self.results = [None] * len(self.polygons)

    def claim(self) -> Optional[int]:
        with self.lock:
            if self.next_index >= len(self.polygons):
                return None
            index = self.next_index
            self.next_index += 1
            return index

    def fail(self, error: ScreeError) -> None:
        self.abort.set()
        with self.lock:
            if self.error is None:
                self.error = error

    def work(self) -> None:
        while not (self.abort.is_set() or self.cancel_event.is_set()):
            index = self.claim()
            if index is None:
                return

            grids = self.grids.isolated() if self.isolate_grids else self.grids
            try:
                scree = self.generator.generate_scree(
                    self.polygons[index], grids, polygon_prng(self.seed, index),
                    self.update_area, self.generate_stones)
            except MemoryError as e:
                logger.error("Out of memory", polygon=index)
                error = ScreeMemoryError(index)
                error.__cause__ = e
                self.fail(error)
                return
            except ScreeError as e:
                logger.error("Scree generation failed", polygon=index, error=str(e))
                self.fail(e)
                return
            except Exception as e:
                logger.exception("Scree generation failed", polygon=index)
                error = ScreeGenerationError(f"Failed to fill polygon {index}: {e}", index)
                error.__cause__ = e
                self.fail(error)
                return

            n_items = len(scree.stones) if self.generate_stones else len(scree.gully_lines)
            with self.lock:
                self.results[index] = scree
                self.done += 1
                self.items += n_items
                done, items = self.done, self.items

            logger.debug("Polygon done", polygon=index, items=n_items)
            if self.progress is None:
                continue
            try:
                keep_going = self.progress(done, len(self.polygons), items)
            except Exception as e:
                logger.exception("Progress callback failed", polygon=index)
                error = ScreeGenerationError(f"Progress callback failed after polygon {index}: {e}",
                                             index)
                error.__cause__ = e
                self.fail(error)
                return
            if keep_going is False:
                self.cancel_event.set()
