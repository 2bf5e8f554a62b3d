"""
Court / ball drawing — PIL images + the geometry both front ends share.

Nothing here touches simulation state; every function only reads balls.
"""

import math
import numpy as np
from PIL import Image, ImageDraw

from physics import BALL_RADIUS

# ──────────────────────────────────────────────
# Palette (clay court, optic-yellow ball)
# ──────────────────────────────────────────────
COLORS = {
    "CLAY_BASE":      (182, 98, 76),
    "CLAY_SHADOW":    (138, 66, 50),
    "LINE":           (235, 235, 235),
    "BALL_BASE":      (223, 255, 79),
    "SEAM":           (255, 255, 255),
}

LINE_WIDTH = 4
BASELINE_OFFSET = 50       # px above the bottom edge
ROOF_SHADOW_ALPHA = 0.2

# Drop shadow model
SHADOW_MAX_ALPHA = 0.4
SHADOW_FADE = 1000.0       # px of height for the shadow to vanish
SHADOW_GROWTH = 200.0      # px of height per +1x shadow size
SHADOW_LIGHT_SLANT = 0.2   # horizontal shadow shift per px of height
SHADOW_FLOOR_INSET = 5.0


# ──────────────────────────────────────────
# Geometry
# ──────────────────────────────────────────

def court_lines(width: float, height: float) -> list:
    """Baseline, slanted service line, center service line as ((x0,y0),(x1,y1))."""
    base_y = height - BASELINE_OFFSET
    return [
        ((0.0, base_y), (width, base_y)),
        ((0.0, height * 0.6), (width, height * 0.5)),
        ((width * 0.5, height * 0.55), (width * 0.5, base_y)),
    ]


def roof_shadow(width: float, height: float) -> list:
    """Triangle cast by the stand roof over the top-left of the court."""
    return [(0.0, 0.0), (width * 0.4, 0.0), (0.0, height * 0.8)]


def shadow_params(ball, surface_height: float):
    """Floor shadow of a ball as (cx, cy, rx, ry, alpha), or None when invisible.

    Higher balls cast larger, fainter shadows shifted away from the light.
    """
    R = ball.radius
    above = surface_height - (float(ball.position[1]) + R)
    alpha = max(0.0, SHADOW_MAX_ALPHA - above / SHADOW_FADE)
    if alpha <= 0:
        return None
    scale = 1 + above / SHADOW_GROWTH
    if scale <= 0:
        return None
    return (
        float(ball.position[0]) + above * SHADOW_LIGHT_SLANT,
        surface_height - SHADOW_FLOOR_INSET,
        R * scale,
        R * 0.5 * scale,
        alpha,
    )


def _ellipse_points(cx, cy, rx, ry, tilt, n=48):
    t = np.linspace(0.0, 2 * np.pi, n + 1)
    ex, ey = rx * np.cos(t), ry * np.sin(t)
    c, s = math.cos(tilt), math.sin(tilt)
    xs = cx + ex * c - ey * s
    ys = cy + ex * s + ey * c
    return list(zip(xs.tolist(), ys.tolist()))


# ──────────────────────────────────────────
# Court image
# ──────────────────────────────────────────

def render_court(width: int, height: int) -> Image.Image:
    """Clay background: diagonal base→shadow gradient, lines, roof shadow."""
    width, height = max(1, int(width)), max(1, int(height))

    # Gradient along the (0,0)→(w,h) diagonal
    ys, xs = np.mgrid[0:height, 0:width].astype(float)
    t = (xs * width + ys * height) / float(width * width + height * height)
    t = np.clip(t, 0.0, 1.0)[..., None]
    base = np.array(COLORS["CLAY_BASE"], dtype=float)
    shade = np.array(COLORS["CLAY_SHADOW"], dtype=float)
    rgb = base * (1 - t) + shade * t
    rgba = np.concatenate([rgb, np.full((height, width, 1), 255.0)], axis=2)
    img = Image.fromarray(rgba.round().astype(np.uint8))

    draw = ImageDraw.Draw(img)
    for p0, p1 in court_lines(width, height):
        draw.line([p0, p1], fill=COLORS["LINE"], width=LINE_WIDTH)

    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).polygon(
        roof_shadow(width, height),
        fill=(0, 0, 0, int(255 * ROOF_SHADOW_ALPHA)),
    )
    return Image.alpha_composite(img, overlay)


# ──────────────────────────────────────────
# Ball sprite
# ──────────────────────────────────────────

def render_ball_sprite(radius: float = BALL_RADIUS, scale: int = 1) -> Image.Image:
    """Transparent square sprite of an unrotated tennis ball.

    Pseudo-3D shading: a highlight from the upper left fading to a light
    shadow at the rim. Seams: inner ring plus a tilted ellipse, which reads
    as spin once the sprite is rotated.
    """
    R = radius * scale
    size = max(2, int(math.ceil(2 * R)))
    c = size / 2.0

    ys, xs = np.mgrid[0:size, 0:size].astype(float)
    dx, dy = xs + 0.5 - c, ys + 0.5 - c
    inside = (dx * dx + dy * dy) <= R * R

    # Highlight at (-5, -5) ball-px, radius 2 → rim
    hx = hy = -5.0 * scale
    d = np.hypot(dx - hx, dy - hy)
    t = np.clip((d - 2.0 * scale) / max(R - 2.0 * scale, 1e-6), 0.0, 1.0)
    ov_rgb = 255.0 * (1 - t)
    ov_a = 0.2 * (1 - t) + 0.1 * t

    base = np.array(COLORS["BALL_BASE"], dtype=float)
    rgb = base[None, None, :] * (1 - ov_a[..., None]) + ov_rgb[..., None] * ov_a[..., None]
    alpha = np.where(inside, 255.0, 0.0)
    rgba = np.concatenate([rgb, alpha[..., None]], axis=2)
    img = Image.fromarray(rgba.round().astype(np.uint8))

    draw = ImageDraw.Draw(img)
    seam_w = max(1, int(round(2 * scale)))
    ring = R - 2 * scale
    draw.ellipse([c - ring, c - ring, c + ring, c + ring],
                 outline=COLORS["SEAM"], width=seam_w)
    draw.line(_ellipse_points(c, c, R * 0.8, R * 0.3, math.pi / 4),
              fill=COLORS["SEAM"], width=seam_w, joint="curve")
    return img


# ──────────────────────────────────────────
# Full frame
# ──────────────────────────────────────────

def render_frame(balls, width: int, height: int, court: Image.Image | None = None) -> Image.Image:
    """Court, then every shadow, then every ball in collection order."""
    width, height = max(1, int(width)), max(1, int(height))
    frame = court.copy() if court is not None else render_court(width, height)

    shadows = Image.new("RGBA", frame.size, (0, 0, 0, 0))
    sdraw = ImageDraw.Draw(shadows)
    for ball in balls:
        sp = shadow_params(ball, height)
        if sp is None:
            continue
        cx, cy, rx, ry, a = sp
        sdraw.ellipse([cx - rx, cy - ry, cx + rx, cy + ry], fill=(0, 0, 0, int(255 * a)))
    frame = Image.alpha_composite(frame, shadows)

    sprite = render_ball_sprite(BALL_RADIUS)
    for ball in balls:
        # Canvas rotation is clockwise on a y-down surface; PIL's is counter-clockwise
        rotated = sprite.rotate(-math.degrees(ball.rotation), resample=Image.Resampling.BICUBIC)
        left = int(round(float(ball.position[0]) - rotated.width / 2))
        top = int(round(float(ball.position[1]) - rotated.height / 2))
        layer = Image.new("RGBA", frame.size, (0, 0, 0, 0))
        layer.paste(rotated, (left, top), rotated)
        frame = Image.alpha_composite(frame, layer)
    return frame
