"""Tests for the waveform rasterizer."""

import numpy as np
import pytest

from cardioscope.rendering.rasterizer import (
    BLACK,
    GREEN,
    WHITE,
    PixelBuffer,
    RenderStyle,
    ValueRange,
    WaveformRasterizer,
    compute_margins,
    draw_line,
    normalize,
    plot_area,
    resample_indices,
    tick_fractions,
    value_range,
    widen_flat_range,
)

SMALL = RenderStyle(width=100, height=100)


class TestHelpers:
    """Tests for the scaling helpers."""

    def test_normalize(self):
        normalized = normalize([10.0, 12.5, 20.0, 15.0, 11.25])
        assert normalized.tolist() == [0.0, 0.25, 1.0, 0.5, 0.125]

    def test_normalize_pressure_series(self, result):
        assert normalize(result.series("pa")).tolist() == [0.0, 0.25, 1.0, 0.5, 0.125]

    def test_normalize_with_explicit_bounds(self):
        assert normalize([5.0], ValueRange(0.0, 10.0)).tolist() == [0.5]

    def test_normalize_widens_flat_explicit_bounds(self):
        with np.errstate(all="raise"):
            assert normalize([5.0, 5.0], ValueRange(5.0, 5.0)).tolist() == [0.5, 0.5]
            assert widen_flat_range(ValueRange(2.0, 2.0 + 1e-9)).span == pytest.approx(1.0)
        assert widen_flat_range(ValueRange(0.0, 4.0)) == ValueRange(0.0, 4.0)

    def test_flat_range_is_centered(self):
        assert value_range([5.0, 5.0, 5.0]) == ValueRange(4.5, 5.5)
        assert normalize([5.0, 5.0]).tolist() == [0.5, 0.5]

    def test_empty_range(self):
        assert value_range([]) == ValueRange(-0.5, 0.5)

    def test_resample_indices(self):
        assert resample_indices(5, 9).tolist() == [0, 0, 1, 1, 2, 2, 3, 3, 4]
        assert resample_indices(1000, 3).tolist() == [0, 499, 999]
        assert resample_indices(1, 4).tolist() == [0, 0, 0, 0]
        assert resample_indices(7, 1).tolist() == [0]

    def test_margins(self):
        assert compute_margins(1024, 256) == (51, 26)
        assert plot_area(SMALL).left == 5
        assert plot_area(SMALL).top == 90

    def test_tick_fractions(self):
        assert tick_fractions(4) == [0.0, 0.25, 0.5, 0.75, 1.0]
        assert tick_fractions(0) == [0.0]
        with pytest.raises(ValueError):
            tick_fractions(-1)


class TestPixelBuffer:
    """Tests for PixelBuffer."""

    def test_rows_stored_top_first(self):
        buffer = PixelBuffer(3, 2)
        buffer.set_pixel(0, 0, WHITE)
        assert tuple(buffer.pixels[1, 0]) == WHITE
        assert buffer.pixel(0, 0) == WHITE

    def test_out_of_range_writes_ignored(self):
        buffer = PixelBuffer(3, 2)
        buffer.set_pixel(-1, 5, WHITE)
        assert buffer == PixelBuffer(3, 2)
        with pytest.raises(IndexError):
            buffer.pixel(3, 0)

    def test_pixels_view_is_read_only(self):
        with pytest.raises(ValueError):
            PixelBuffer(2, 2).pixels[0, 0] = WHITE

    def test_to_bytes_size(self):
        assert len(PixelBuffer(4, 3).to_bytes()) == 4 * 3 * 4


class TestDrawLine:
    """Tests for draw_line."""

    def test_includes_both_endpoints(self):
        buffer = PixelBuffer(10, 10)
        draw_line(buffer, 0, 0, 7, 3, WHITE)
        assert buffer.pixel(0, 0) == WHITE
        assert buffer.pixel(7, 3) == WHITE

    def test_vertical_line_is_continuous(self):
        buffer = PixelBuffer(4, 8)
        draw_line(buffer, 2, 6, 2, 1, WHITE)
        assert all(buffer.pixel(2, y) == WHITE for y in range(1, 7))
        assert buffer.pixel(2, 0) == BLACK

    def test_single_point(self):
        buffer = PixelBuffer(3, 3)
        draw_line(buffer, 1, 1, 1, 1, WHITE)
        assert int((buffer.pixels == np.array(WHITE, dtype=np.uint8)).all(axis=2).sum()) == 1


class TestWaveformRasterizer:
    """Tests for WaveformRasterizer."""

    def test_output_matches_resolution(self):
        buffer = WaveformRasterizer().render([1.0, 2.0, 3.0])
        assert buffer.pixels.shape == (256, 1024, 4)

    def test_rendering_is_deterministic(self, result):
        rasterizer = WaveformRasterizer(SMALL)
        assert rasterizer.render(result.series("pa")) == rasterizer.render(result.series("pa"))

    def test_waveform_pixels(self):
        buffer = WaveformRasterizer(SMALL).render([1.0, 0.0])
        # Maximum sits on the top of the plot area, minimum on the bottom.
        assert buffer.pixel(50, 90) == GREEN
        assert buffer.pixel(99, 10) == GREEN
        assert buffer.pixel(50, 50) == BLACK

    def test_flat_series_drawn_on_midline(self):
        buffer = WaveformRasterizer(SMALL).render([5.0] * 20)
        axis_x = plot_area(SMALL).left
        for column in range(100):
            if column != axis_x:
                assert buffer.pixel(column, 50) == GREEN

    def test_flat_explicit_bounds_drawn_on_midline(self):
        with np.errstate(all="raise"):
            buffer = WaveformRasterizer(SMALL).render([5.0] * 20, bounds=ValueRange(5.0, 5.0))
        assert buffer == WaveformRasterizer(SMALL).render([5.0] * 20)
        assert buffer.pixel(50, 50) == GREEN

    def test_empty_series_draws_axes_only(self):
        buffer = WaveformRasterizer(SMALL).render([])
        colors = {tuple(p) for p in buffer.pixels.reshape(-1, 4).tolist()}
        assert colors == {BLACK, WHITE}

    def test_axes_and_ticks(self):
        style = RenderStyle(width=200, height=100, x_ticks=4, y_ticks=2)
        buffer = WaveformRasterizer(style).render([])
        # Axes along the left and bottom edges of the plot area.
        assert buffer.pixel(10, 50) == WHITE
        assert buffer.pixel(100, 10) == WHITE
        # X ticks at 10, 55, 100, 145, 190 extend below the axis.
        for x in (10, 55, 100, 145, 190):
            assert buffer.pixel(x, 5) == WHITE
        assert buffer.pixel(56, 5) == BLACK
        # Y ticks at 10, 50, 90 extend left of the axis.
        for y in (10, 50, 90):
            assert buffer.pixel(5, y) == WHITE
        assert buffer.pixel(5, 30) == BLACK

    def test_zero_ticks_draws_single_tick(self):
        style = RenderStyle(width=200, height=100, x_ticks=0, y_ticks=0)
        buffer = WaveformRasterizer(style).render([])
        assert buffer.pixel(10, 5) == WHITE
        assert buffer.pixel(190, 5) == BLACK

    def test_reused_buffer_is_fully_overwritten(self, result):
        rasterizer = WaveformRasterizer(SMALL)
        buffer = rasterizer.render(result.series("pa"))
        again = rasterizer.render(result.series("plv"), buffer=buffer)
        assert again is buffer
        assert buffer == rasterizer.render(result.series("plv"))

    def test_buffer_size_mismatch(self):
        with pytest.raises(ValueError):
            WaveformRasterizer(SMALL).render([1.0], buffer=PixelBuffer(50, 50))

    def test_custom_colors(self):
        style = RenderStyle(width=100, height=100, background_color=(1, 2, 3, 255))
        buffer = WaveformRasterizer(style).render_blank()
        assert buffer.pixel(0, 0) == (1, 2, 3, 255)

    def test_invalid_style(self):
        with pytest.raises(ValueError):
            RenderStyle(width=0)
        with pytest.raises(ValueError):
            RenderStyle(waveform_color=(0, 300, 0, 255))
