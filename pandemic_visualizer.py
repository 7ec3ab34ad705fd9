"""
Pandemic Simulator: Live Graph
================================
Runs the simple-variant simulation and plots its history in real time using
Pygame. Infected counts are drawn in the upper half of the window, deaths in
the lower half, both scaled to the population size.

Usage:
    pip install pygame numpy
    python pandemic_visualizer.py

Controls:
    Mouse      Hover a ring on the infected curve to read its count
    SPACE      Pause / Resume
    UP / DOWN  Speed up / slow down (days per frame)
    R          Reset simulation
    Q / ESC    Quit (or close the window)
"""

import sys
import time as _time

import numpy as np
import pygame

from pandemic import RUNNING, ConsoleReporter, SimpleConfig, World


# ═══════════════════════════════════════════════════════════════════════════════
# VISUALIZER CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

INITIAL_WIDTH = 800
INITIAL_HEIGHT = 600
MARGIN = 50
DOT_RADIUS = 5
HOVER_RADIUS = 15
MAX_MARKERS = 400          # ring markers on the infected curve are thinned past this
FPS = 60
INITIAL_DAYS_PER_FRAME = 1

BG_COLOR = (0, 0, 0)
INFECTED_COLOR = (255, 0, 0)
DEAD_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)


# ═══════════════════════════════════════════════════════════════════════════════
# GEOMETRY
# ═══════════════════════════════════════════════════════════════════════════════

def plot_height(height):
    """Usable vertical span of each half-window plot, in pixels."""
    return max(height // 2 - 2 * MARGIN - 20, 1)


def curve_points(values, population, width, height, baseline):
    """
    Map a history series to integer screen points.
    x spreads the series evenly across the window between the margins;
    y rises from `baseline` in proportion to value / population.
    """
    n = len(values)
    if n == 0:
        return []
    v = np.asarray(values, dtype=np.float64)
    xs = MARGIN + np.arange(n) * (width - 2 * MARGIN) / n
    ys = baseline - v * plot_height(height) / max(population, 1)
    return list(zip(xs.astype(int).tolist(), ys.astype(int).tolist()))


def is_hovered(point, mouse):
    x, y = point
    mx, my = mouse
    return abs(mx - x) <= HOVER_RADIUS and abs(my - y) <= HOVER_RADIUS


# ═══════════════════════════════════════════════════════════════════════════════
# RENDERING FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def draw_graph(surface, infected_pts, dead_pts):
    if len(infected_pts) > 1:
        pygame.draw.lines(surface, INFECTED_COLOR, False, infected_pts)
    if len(dead_pts) > 1:
        pygame.draw.lines(surface, DEAD_COLOR, False, dead_pts)


def draw_doughnut(surface, point, color, hovered):
    outer = HOVER_RADIUS if hovered else DOT_RADIUS
    inner = DOT_RADIUS // 2
    pygame.draw.circle(surface, color, point, outer, width=outer - inner)


def draw_text(surface, font, text, x, y):
    surface.blit(font.render(text, True, TEXT_COLOR), (x, y))


def draw_markers(surface, font, infected_pts, infected_values, mouse):
    step = max(1, len(infected_pts) // MAX_MARKERS)
    for i in range(0, len(infected_pts), step):
        pt = infected_pts[i]
        hovered = is_hovered(pt, mouse)
        draw_doughnut(surface, pt, INFECTED_COLOR, hovered)
        if hovered:
            draw_text(surface, font, str(infected_values[i]), pt[0] + 5, pt[1] - 20)


def draw_stats(surface, font, world, days_per_frame, paused):
    s = world.last_snapshot
    state = "PAUSED" if paused else f"{days_per_frame} days/frame"
    lines = [f"Day {world.day - 1}   {state}"]
    if s:
        lines.append(f"S {s.susceptible:,}  I {s.infected:,}  R {s.recovered:,}  D {s.dead:,}")
    lines.append(f"Mutations: {world.mutations}")
    y = 8
    for text in lines:
        draw_text(surface, font, text, 10, y)
        y += 18


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════════

def main(cfg=None):
    cfg = cfg or SimpleConfig()

    pygame.init()
    pygame.display.set_caption("Pandemic Simulation")
    width, height = INITIAL_WIDTH, INITIAL_HEIGHT
    screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("monospace", 16)

    world = World(cfg, listeners=[ConsoleReporter(verbose=False)])
    paused = False
    days_per_frame = INITIAL_DAYS_PER_FRAME
    sim_start = _time.time()

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.VIDEORESIZE:
                width, height = event.w, event.h
                screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)
            elif event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_q, pygame.K_ESCAPE):
                    running = False
                elif event.key == pygame.K_SPACE:
                    paused = not paused
                elif event.key == pygame.K_UP:
                    days_per_frame = min(days_per_frame + 1, 50)
                elif event.key == pygame.K_DOWN:
                    days_per_frame = max(days_per_frame - 1, 1)
                elif event.key == pygame.K_r:
                    world = World(cfg, listeners=[ConsoleReporter(verbose=False)])
                    sim_start = _time.time()

        if not paused:
            for _ in range(days_per_frame):
                if world.state != RUNNING:
                    break
                world.update()

        # ── Render ───────────────────────────────────────────────────────
        screen.fill(BG_COLOR)
        infected = [s.infected for s in world.stats_history]
        dead = [s.dead for s in world.stats_history]
        infected_pts = curve_points(infected, world.pop, width, height, height // 2)
        dead_pts = curve_points(dead, world.pop, width, height, height // 2 + MARGIN + plot_height(height))

        draw_graph(screen, infected_pts, dead_pts)
        draw_markers(screen, font, infected_pts, infected, pygame.mouse.get_pos())
        draw_stats(screen, font, world, days_per_frame, paused)

        if world.state != RUNNING:
            draw_text(screen, font, "Pandemic simulation finished. Press X to exit.", 10, height - 40)

        pygame.display.flip()
        clock.tick(FPS)

    print("Pandemic simulation finished.")
    print(f"Time taken to simulate: {_time.time() - sim_start:.2f}s")
    pygame.quit()
    sys.exit()


if __name__ == "__main__":
    main()
