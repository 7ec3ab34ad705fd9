"""
Pandemic Simulator
==================
Agent-based stochastic epidemic model. A fixed population of individuals is
advanced one day at a time: every infected individual exposes randomly chosen
members of the population, then recovers or dies. Once in a while the virus
mutates and part of the recovered population loses its immunity.

Two rule variants share one engine:
  - rich:   intelligence-driven masks and quarantine, three exposure tiers
  - simple: no quarantine, masked / unmasked exposure only

Contacts are drawn uniformly from the whole population, with replacement.
"""

import heapq
import json
import os
import time
from typing import NamedTuple

import numpy as np


# ─────────────────────────────────────────────────────
# Status codes and run states
# ─────────────────────────────────────────────────────

SUSCEPTIBLE = 0
INFECTED    = 1
RECOVERED   = 2
DEAD        = 3

N_STATUSES = 4

STATUS_NAMES = ["susceptible", "infected", "recovered", "dead"]

RUNNING          = "running"
EXTINGUISHED     = "extinguished"
BUDGET_EXHAUSTED = "budget_exhausted"

VARIANTS = ("rich", "simple")
OUTCOME_POLICIES = ("sequential", "partition")


class ConfigurationError(ValueError):
    """A configuration field is out of range. Raised before any day is simulated."""

    def __init__(self, field, message):
        super().__init__(f"{field}: {message}")
        self.field = field


class SimulationFinished(RuntimeError):
    """The world already reached a terminal state and cannot be stepped."""


class Snapshot(NamedTuple):
    day: int
    susceptible: int
    infected: int
    recovered: int
    dead: int


# ─────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────

class Config:
    # Population
    population_size = 50000
    initial_infected = 5
    variant = "rich"
    mask_intelligence_threshold = 98   # rich variant: masked when intelligence >= this
    masked_fraction = None             # random masked share, overrides the threshold

    # Spread
    infection_chance = 0.1
    mask_protection = 0.12             # taken off infection_chance for masked targets
    attempt_base = 10                  # rich: quarantined base//10, masked base//2, else base*2
    simple_attempts = (5, 25)          # simple: (masked, unmasked)

    # Quarantine (rich variant)
    quarantine_intelligence = 105
    quarantine_roll = 0.65

    # Recovery / death
    recovery_chance = 0.05
    fatality_chance = 0.01
    outcome_policy = "sequential"

    # Mutation
    mutation_probability = 0.005

    # Simulation
    day_budget = 25000
    snapshot_interval = 1
    population_dump_interval = 0       # 0 disables per-day population dumps
    output_dir = "output_pandemic"
    random_seed = None

    _probabilities = ("infection_chance", "mask_protection", "quarantine_roll",
                      "recovery_chance", "fatality_chance", "mutation_probability")

    @property
    def masked_infection_chance(self):
        return max(0.0, self.infection_chance - self.mask_protection)

    def exposure_attempts(self):
        """Attempt counts as (quarantined, masked, unmasked)."""
        if self.variant == "simple":
            masked, unmasked = self.simple_attempts
            return masked, masked, unmasked
        b = self.attempt_base
        return b // 10, b // 2, b * 2

    def validate(self):
        if self.population_size <= 0:
            raise ConfigurationError("population_size",
                                     f"must be positive, got {self.population_size}")
        if not 0 <= self.initial_infected <= self.population_size:
            raise ConfigurationError("initial_infected",
                                     f"must be within [0, {self.population_size}], "
                                     f"got {self.initial_infected}")
        if self.day_budget <= 0:
            raise ConfigurationError("day_budget", f"must be positive, got {self.day_budget}")
        for name in self._probabilities:
            p = getattr(self, name)
            if not 0.0 <= p <= 1.0:
                raise ConfigurationError(name, f"must be within [0, 1], got {p}")
        if self.masked_fraction is not None and not 0.0 <= self.masked_fraction <= 1.0:
            raise ConfigurationError("masked_fraction",
                                     f"must be within [0, 1], got {self.masked_fraction}")
        if self.attempt_base < 0:
            raise ConfigurationError("attempt_base", f"must be >= 0, got {self.attempt_base}")
        if min(self.simple_attempts) < 0:
            raise ConfigurationError("simple_attempts",
                                     f"must be >= 0, got {self.simple_attempts}")
        if self.snapshot_interval <= 0:
            raise ConfigurationError("snapshot_interval",
                                     f"must be positive, got {self.snapshot_interval}")
        if self.population_dump_interval < 0:
            raise ConfigurationError("population_dump_interval",
                                     f"must be >= 0, got {self.population_dump_interval}")
        if self.variant not in VARIANTS:
            raise ConfigurationError("variant", f"must be one of {VARIANTS}, got {self.variant!r}")
        if self.outcome_policy not in OUTCOME_POLICIES:
            raise ConfigurationError("outcome_policy",
                                     f"must be one of {OUTCOME_POLICIES}, "
                                     f"got {self.outcome_policy!r}")
        return self

    def as_dict(self):
        return {k: getattr(self, k) for k in dir(self)
                if not k.startswith('_') and not callable(getattr(self, k))}


class SimpleConfig(Config):
    """Defaults of the graphical variant: no intelligence traits in play."""
    population_size = 100000
    initial_infected = 25
    variant = "simple"
    infection_chance = 0.19
    mask_protection = 0.13
    day_budget = 250000
    output_dir = "output_pandemic_gui"


# ─────────────────────────────────────────────────────
# Trait generator
# ─────────────────────────────────────────────────────

def sample_intelligence(rng, size=None, mean=100.0, stddev=35.0):
    """Draw intelligence score(s) from Normal(mean, stddev) via Box-Muller.

    Each sample consumes two uniform draws. Values are not clamped, so scores
    far from the mean (negative ones included) do occur.
    """
    u1 = 1.0 - rng.random(size)  # (0, 1]
    u2 = rng.random(size)
    z0 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    return z0 * stddev + mean


# ─────────────────────────────────────────────────────
# World
# ─────────────────────────────────────────────────────

class World:
    def __init__(self, cfg=None, listeners=None):
        self.cfg = (cfg or Config()).validate()
        c = self.cfg
        self.rng = np.random.default_rng(c.random_seed)
        self.listeners = list(listeners or [])

        self.day = 1
        self.mutations = 0
        self.state = RUNNING
        self.last_snapshot = None
        self.stats_history = []

        self._attempts = c.exposure_attempts()
        self._masked_chance = c.masked_infection_chance

        self._init_population()

    def _init_population(self):
        """All susceptible except the first `initial_infected` individuals."""
        c = self.cfg
        n = c.population_size

        # truncated toward zero
        self.intelligence = np.trunc(sample_intelligence(self.rng, n)).astype(np.int64)

        self.status = np.full(n, SUSCEPTIBLE, dtype=np.int8)
        self.status[:c.initial_infected] = INFECTED

        if c.masked_fraction is not None:
            self.masked = self.rng.random(n) < c.masked_fraction
        elif c.variant == "rich":
            self.masked = self.intelligence >= c.mask_intelligence_threshold
        else:
            self.masked = np.zeros(n, dtype=bool)

        self.quarantined = np.zeros(n, dtype=bool)
        self.counts = self._count()

    @property
    def pop(self):
        return len(self.status)

    @property
    def finished(self):
        return self.state != RUNNING

    def _count(self):
        return np.bincount(self.status, minlength=N_STATUSES)

    def _emit(self, event, *args):
        for listener in self.listeners:
            handler = getattr(listener, event, None)
            if handler is not None:
                handler(*args)

    # ══════════════════════════════════════
    # Transition rule
    # ══════════════════════════════════════

    def _exposure_count(self, i):
        quarantined, masked, unmasked = self._attempts
        if self.quarantined[i]:
            return quarantined
        if self.masked[i]:
            return masked
        return unmasked

    def _spread(self, i):
        """Expose random targets on behalf of infected individual i.

        Returns the sorted indices that went from susceptible to infected.
        A target drawn twice is infected if any of its rolls succeeds, which
        is what attempting the draws one after another gives as well.
        """
        c = self.cfg
        k = self._exposure_count(i)
        targets = self.rng.integers(0, self.pop, size=k)
        rolls = self.rng.random(k)
        chance = np.where(self.masked[targets], self._masked_chance, c.infection_chance)
        hit = np.unique(targets[(self.status[targets] == SUSCEPTIBLE) & (rolls < chance)])
        self.status[hit] = INFECTED
        return hit

    def _roll_outcome(self, i):
        c = self.cfg
        u = self.rng.random()
        if u < c.recovery_chance:
            self.status[i] = RECOVERED
        elif c.outcome_policy == "partition":
            if u < c.recovery_chance + c.fatality_chance:
                self.status[i] = DEAD
        elif self.rng.random() < c.fatality_chance:
            self.status[i] = DEAD

    def _transition_individual(self, i):
        c = self.cfg
        if c.variant == "rich" and self.intelligence[i] >= c.quarantine_intelligence:
            if self.rng.random() >= c.quarantine_roll:
                self.quarantined[i] = True
        newly_infected = self._spread(i)
        self._roll_outcome(i)
        return newly_infected

    def _simulate_day(self):
        """One in-place pass of the transition rule in population order.

        Only infected individuals are visited. An individual infected earlier
        in the pass is visited later in the same pass when its index is higher
        than the infector's, exactly as a full index scan would find it.
        """
        pending = np.flatnonzero(self.status == INFECTED).tolist()  # sorted, so a valid heap
        while pending:
            i = heapq.heappop(pending)
            for t in self._transition_individual(i).tolist():
                if t > i:
                    heapq.heappush(pending, t)

    # ══════════════════════════════════════
    # Mutation
    # ══════════════════════════════════════

    def _virus_mutation(self):
        """Maybe mutate; each recovered individual reverts with chance `severity`."""
        if self.rng.random() >= self.cfg.mutation_probability:
            return None
        severity = float(self.rng.random())
        self.mutations += 1
        self._emit("on_mutation", severity)
        revert = (self.status == RECOVERED) & (self.rng.random(self.pop) > 1.0 - severity)
        self.status[revert] = SUSCEPTIBLE
        return severity

    # ══════════════════════════════════════
    # Main loop
    # ══════════════════════════════════════

    def update(self):
        if self.finished:
            raise SimulationFinished(f"simulation {self.state} at day {self.day - 1}")
        self._simulate_day()
        self._virus_mutation()
        self.counts = self._count()
        if self.counts[INFECTED] == 0:
            self.state = EXTINGUISHED
        elif self.day >= self.cfg.day_budget:
            self.state = BUDGET_EXHAUSTED
        self._record_stats()
        self.day += 1
        return self.last_snapshot

    def run(self):
        while not self.finished:
            self.update()
        return self.state

    # ══════════════════════════════════════
    # Stats & snapshots
    # ══════════════════════════════════════

    def _record_stats(self):
        s, i, r, d = (int(x) for x in self.counts)
        snap = Snapshot(self.day, s, i, r, d)
        self.last_snapshot = snap
        if self.day % self.cfg.snapshot_interval == 0 or self.finished:
            self.stats_history.append(snap)
            self._emit("on_snapshot", snap, self.mutations)

    def save_snapshot(self, output_dir):
        os.makedirs(output_dir, exist_ok=True)
        p = self.pop
        # fixed stride; the simulation generator is left untouched
        idx = np.unique(np.linspace(0, p - 1, 500, dtype=np.int64)) if p > 500 else np.arange(p)
        people = [{"index": int(i), "status": STATUS_NAMES[self.status[i]],
                   "masked": bool(self.masked[i]), "quarantined": bool(self.quarantined[i]),
                   "intelligence": int(self.intelligence[i])} for i in idx]
        snap = self.last_snapshot
        day = snap.day if snap else 0
        with open(os.path.join(output_dir, f"snapshot_{day:06d}.json"), 'w') as f:
            json.dump({"day": day, "population": p, "mutations": self.mutations,
                       "counts": snap._asdict() if snap else {}, "individuals": people}, f)


# ─────────────────────────────────────────────────────
# Console reporting
# ─────────────────────────────────────────────────────

def print_statistics(snap):
    print(f"Day {snap.day}: Susceptible: {snap.susceptible}, Infected: {snap.infected}, "
          f"Recovered: {snap.recovered}, Dead: {snap.dead}")


def print_end_statistics(snap, mutations, elapsed):
    years = round(snap.day / 36.5) / 10
    print()
    print(f"Day {snap.day} (Years: {years})  ---------")
    print(f"Still Susceptible: {snap.susceptible}")
    print(f"Recovered: {snap.recovered}")
    print(f"Dead: {snap.dead}")
    print(f"Virus mutations: {mutations}")
    print()
    print(f"Time taken to simulate: {elapsed:.2f}s")


class ConsoleReporter:
    """Prints each recorded snapshot and every virus mutation."""

    def __init__(self, verbose=True):
        self.verbose = verbose

    def on_snapshot(self, snap, mutations):
        # the final day is covered by the end statistics
        if self.verbose and snap.infected > 0:
            print_statistics(snap)

    def on_mutation(self, severity):
        print(f"Virus mutation. Genetic difference: {severity:.4f}")


def run_simulation(cfg=None, verbose=True):
    cfg = cfg or Config()
    world = World(cfg, listeners=[ConsoleReporter(verbose)])
    print("Pandemic Simulator")
    print(f"Population: {cfg.population_size}  |  Initial infected: {cfg.initial_infected}  |  "
          f"Variant: {cfg.variant}  |  Day budget: {cfg.day_budget}")
    print(f"{'─' * 95}")

    start = time.time()
    while not world.finished:
        snap = world.update()
        if cfg.population_dump_interval and snap.day % cfg.population_dump_interval == 0:
            world.save_snapshot(cfg.output_dir)
    el = time.time() - start

    print(f"{'─' * 95}")
    if world.state == EXTINGUISHED:
        print("Pandemic over!")
        print_end_statistics(world.last_snapshot, world.mutations, el)
    else:
        print("Pandemic never finished. Please allocate more time.")

    os.makedirs(cfg.output_dir, exist_ok=True)
    with open(os.path.join(cfg.output_dir, "run_summary.json"), 'w') as f:
        json.dump({"config": cfg.as_dict(), "outcome": world.state,
                   "mutations": world.mutations,
                   "stats_history": [s._asdict() for s in world.stats_history]}, f, indent=2)
    return world


if __name__ == "__main__":
    run_simulation()
