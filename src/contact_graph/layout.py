"""Force-directed layout session.

The physics lives in a stepper object with a single ``step(state) -> state``
method; :class:`ForceStepper` is the default. :class:`LayoutSession` owns the
state and everything around the physics: alpha decay, pins, reheat/cool,
tick callbacks and shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence
import asyncio
import logging

import numpy as np

from .config import ViewConfig
from .errors import UnknownEntityError
from .graph import ForcePolicy, force_policy, intern
from .models import Constant, Entity, Relationship

logger = logging.getLogger(__name__)

ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
VELOCITY_DECAY = 0.4
DEFAULT_CHARGE = -30.0
DISTANCE_MIN2 = 1.0
INITIAL_RADIUS = 10.0
INITIAL_ANGLE = np.pi * (3 - np.sqrt(5.0))
DEFAULT_REHEAT = 0.3

TickCallback = Callable[[List[Entity]], Any]


@dataclass
class SimulationState:
    x: np.ndarray
    y: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    fx: np.ndarray  # NaN where not pinned
    fy: np.ndarray
    alpha: float = 1.0
    alpha_target: float = 0.0
    ticks: int = 0

    @classmethod
    def initial(cls, entities: Sequence[Entity]) -> 'SimulationState':
        """Place entities without a position on a phyllotaxis spiral."""
        n = len(entities)
        x = np.empty(n)
        y = np.empty(n)
        fx = np.full(n, np.nan)
        fy = np.full(n, np.nan)
        for i, e in enumerate(entities):
            if e.fx is not None:
                fx[i] = e.fx
            if e.fy is not None:
                fy[i] = e.fy
            if e.x is not None and e.y is not None:
                x[i], y[i] = e.x, e.y
            else:
                radius = INITIAL_RADIUS * np.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                x[i] = radius * np.cos(angle)
                y[i] = radius * np.sin(angle)
        x = np.where(np.isnan(fx), x, fx)
        y = np.where(np.isnan(fy), y, fy)
        return cls(x=x, y=y, vx=np.zeros(n), vy=np.zeros(n), fx=fx, fy=fy)

    def copy(self) -> 'SimulationState':
        return replace(
            self,
            x=self.x.copy(), y=self.y.copy(),
            vx=self.vx.copy(), vy=self.vy.copy(),
            fx=self.fx.copy(), fy=self.fy.copy(),
        )


class ForceStepper:
    """Many-body repulsion, link springs and centering, one step at a time.

    Charge is computed pairwise rather than with a quadtree; the graphs drawn
    here have at most a few hundred cases.
    """

    def __init__(
        self,
        n: int,
        relationships: Sequence[Relationship],
        forces: ForcePolicy,
        *,
        velocity_decay: float = VELOCITY_DECAY,
        seed: int = 42,
    ):
        self.n = n
        self.velocity_decay = velocity_decay
        self.rng = np.random.RandomState(seed)
        self.sources = np.array([r.source_index for r in relationships], dtype=int)
        self.targets = np.array([r.target_index for r in relationships], dtype=int)

        count = np.zeros(n)
        np.add.at(count, self.sources, 1)
        np.add.at(count, self.targets, 1)
        m = len(relationships)
        if m:
            cs, ct = count[self.sources], count[self.targets]
            self.bias = cs / (cs + ct)
        else:
            self.bias = np.zeros(0)

        self.distance = np.array([forces.link_distance.at(k) for k in range(m)], dtype=float)
        if forces.link_strength is None:
            self.link_strength = 1.0 / np.minimum(count[self.sources], count[self.targets]) if m else np.zeros(0)
        else:
            self.link_strength = np.array([forces.link_strength.at(k) for k in range(m)], dtype=float)
        node_strength = forces.node_strength or Constant(DEFAULT_CHARGE)
        self.charge = np.array([node_strength.at(i) for i in range(n)], dtype=float)

    def _jiggle(self, size=None):
        return (self.rng.random_sample(size) - 0.5) * 1e-6

    def _apply_charge(self, s: SimulationState) -> None:
        if self.n < 2:
            return
        dx = s.x[None, :] - s.x[:, None]
        dy = s.y[None, :] - s.y[:, None]
        off_diagonal = ~np.eye(self.n, dtype=bool)
        coincident = (dx == 0) & off_diagonal
        if coincident.any():
            dx[coincident] = self._jiggle(int(coincident.sum()))
        coincident = (dy == 0) & off_diagonal
        if coincident.any():
            dy[coincident] = self._jiggle(int(coincident.sum()))
        l = dx * dx + dy * dy
        l = np.where(l < DISTANCE_MIN2, np.sqrt(DISTANCE_MIN2 * l), l)
        np.fill_diagonal(l, np.inf)
        w = self.charge[None, :] * s.alpha / l
        s.vx += (dx * w).sum(axis=1)
        s.vy += (dy * w).sum(axis=1)

    def _apply_links(self, s: SimulationState) -> None:
        # sequential on purpose: each spring sees velocities updated by the previous one
        for k in range(len(self.sources)):
            src, tgt = self.sources[k], self.targets[k]
            lx = s.x[tgt] + s.vx[tgt] - s.x[src] - s.vx[src] or self._jiggle()
            ly = s.y[tgt] + s.vy[tgt] - s.y[src] - s.vy[src] or self._jiggle()
            l = np.hypot(lx, ly)
            l = (l - self.distance[k]) / l * s.alpha * self.link_strength[k]
            lx *= l
            ly *= l
            b = self.bias[k]
            s.vx[tgt] -= lx * b
            s.vy[tgt] -= ly * b
            s.vx[src] += lx * (1 - b)
            s.vy[src] += ly * (1 - b)

    def _apply_center(self, s: SimulationState) -> None:
        if self.n:
            s.x -= s.x.mean()
            s.y -= s.y.mean()

    def step(self, state: SimulationState) -> SimulationState:
        s = state.copy()
        self._apply_charge(s)
        self._apply_links(s)
        self._apply_center(s)

        free_x = np.isnan(s.fx)
        free_y = np.isnan(s.fy)
        s.vx *= (1 - self.velocity_decay)
        s.vy *= (1 - self.velocity_decay)
        s.x = np.where(free_x, s.x + s.vx, s.fx)
        s.y = np.where(free_y, s.y + s.vy, s.fy)
        s.vx = np.where(free_x, s.vx, 0.0)
        s.vy = np.where(free_y, s.vy, 0.0)
        s.ticks += 1
        return s


class SessionStatus(Enum):
    RUNNING = 'running'
    SETTLED = 'settled'
    STOPPED = 'stopped'


class LayoutSession:
    """A running simulation over one view's entities."""

    def __init__(
        self,
        entities: List[Entity],
        stepper,
        *,
        alpha_min: float = ALPHA_MIN,
        alpha_decay: float = ALPHA_DECAY,
    ):
        self.entities = entities
        self.stepper = stepper
        self.alpha_min = alpha_min
        self.alpha_decay = alpha_decay
        self.state = SimulationState.initial(entities)
        self.status = SessionStatus.RUNNING
        self._callbacks: List[TickCallback] = []
        self._index: Dict[Any, int] = {e.id: e.index for e in entities}
        self._sync()

    @classmethod
    def start(
        cls,
        entities: List[Entity],
        relationships: Sequence[Relationship],
        config: ViewConfig,
        *,
        forces: Optional[ForcePolicy] = None,
        stepper=None,
    ) -> 'LayoutSession':
        if stepper is None:
            if forces is None:
                forces = force_policy(config, [e.record for e in entities], [r.record for r in relationships])
            stepper = ForceStepper(len(entities), relationships, forces)
        session = cls(entities, stepper)
        if config.invalidation is not None:
            config.invalidation.add_done_callback(lambda _: session.stop())
        return session

    @property
    def alpha(self) -> float:
        return self.state.alpha

    @property
    def running(self) -> bool:
        return self.status is SessionStatus.RUNNING

    def on_tick(self, callback: TickCallback) -> TickCallback:
        if self.status is not SessionStatus.STOPPED:
            self._callbacks.append(callback)
        return callback

    def _lookup(self, entity_id: Any) -> int:
        key = intern(entity_id)
        if key not in self._index:
            raise UnknownEntityError(entity_id)
        return self._index[key]

    def _sync(self) -> None:
        s = self.state
        for i, e in enumerate(self.entities):
            e.x = float(s.x[i])
            e.y = float(s.y[i])
            e.fx = None if np.isnan(s.fx[i]) else float(s.fx[i])
            e.fy = None if np.isnan(s.fy[i]) else float(s.fy[i])

    def tick(self) -> bool:
        """Advance one step and notify listeners. Returns whether still running."""
        if self.status is not SessionStatus.RUNNING:
            return False
        s = self.state
        s.alpha += (s.alpha_target - s.alpha) * self.alpha_decay
        new = self.stepper.step(s)
        pinned_x = ~np.isnan(new.fx)
        pinned_y = ~np.isnan(new.fy)
        new.x[pinned_x] = new.fx[pinned_x]
        new.y[pinned_y] = new.fy[pinned_y]
        self.state = new
        self._sync()
        for callback in list(self._callbacks):
            callback(self.entities)
            if self.status is SessionStatus.STOPPED:
                return False
        if self.state.alpha < self.alpha_min:
            self.status = SessionStatus.SETTLED
            logger.debug(f"Layout settled after {self.state.ticks} ticks")
            return False
        return True

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick until the layout settles, stops, or ``max_ticks`` is reached."""
        done = 0
        while self.status is SessionStatus.RUNNING and (max_ticks is None or done < max_ticks):
            self.tick()
            done += 1
        return done

    async def run_async(self, interval: float = 1 / 60) -> int:
        """Drive the session from the event loop, one tick per ``interval``."""
        done = 0
        while self.status is SessionStatus.RUNNING:
            self.tick()
            done += 1
            await asyncio.sleep(interval)
        return done

    def pin(self, entity_id: Any, x: float, y: float) -> None:
        i = self._lookup(entity_id)
        s = self.state
        s.fx[i] = x
        s.fy[i] = y
        s.x[i] = x
        s.y[i] = y
        self._sync()

    def unpin(self, entity_id: Any) -> None:
        i = self._lookup(entity_id)
        self.state.fx[i] = np.nan
        self.state.fy[i] = np.nan
        self._sync()

    def reheat(self, level: float = DEFAULT_REHEAT) -> None:
        if self.status is SessionStatus.STOPPED:
            logger.debug("Ignoring reheat on a stopped layout session")
            return
        self.state.alpha_target = level
        if self.status is SessionStatus.SETTLED:
            self.status = SessionStatus.RUNNING

    def cool(self) -> None:
        self.state.alpha_target = 0.0

    def stop(self) -> None:
        if self.status is SessionStatus.STOPPED:
            return
        self.status = SessionStatus.STOPPED
        self._callbacks.clear()
        logger.debug(f"Layout session stopped at tick {self.state.ticks}")
