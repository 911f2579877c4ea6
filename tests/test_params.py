"""Tests for parameter parsing, validation and presets."""

import dataclasses
import json

import pytest

from plategen.errors import ParameterError
from plategen.params import (
    BracketParams,
    ModelParams,
    camel_case,
    load_params,
    save_params,
    snake_case,
)


def test_key_conversion():
    assert snake_case('plateDepth') == 'plate_depth'
    assert snake_case('plate_depth') == 'plate_depth'
    assert snake_case('slantedTextPlate') == 'slanted_text_plate'
    assert camel_case('max_polyline_height') == 'maxPolylineHeight'


class TestDefaults:

    def test_model_defaults(self):
        params = ModelParams()
        assert params.width == 50
        assert params.plate_depth == 10
        assert params.thickness == 5
        assert params.text_thickness == 2
        assert params.margin == 2.5
        assert params.max_polyline_height == 20
        assert params.font_size == 3.5
        assert params.truncate_pct == 100
        assert params.title == 'Century *100*'
        assert params.max_size == 45

    def test_bracket_defaults(self):
        params = BracketParams()
        assert (params.width, params.depth, params.height) == (35, 20, 15)
        assert params.rib_count == 3
        assert params.ear_width == 10

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ModelParams().width = 60


class TestFromMapping:

    def test_form_values(self):
        params = ModelParams.from_mapping({
            'width': '60',
            'plateDepth': '12.5',
            'slantedTextPlate': 'on',
            'title': 'Loop',
        })
        assert params.width == 60.0
        assert params.plate_depth == 12.5
        assert params.slanted_text_plate is True
        assert params.title == 'Loop'

    def test_unknown_keys_ignored(self):
        assert ModelParams.from_mapping({'colour': 'red'}) == ModelParams()

    def test_overlay_on_base(self):
        base = ModelParams(width=80)
        params = ModelParams.from_mapping({'thickness': 3}, base)
        assert params.width == 80
        assert params.thickness == 3

    def test_bad_number(self):
        with pytest.raises(ParameterError):
            ModelParams.from_mapping({'width': 'wide'})

    def test_bad_boolean(self):
        with pytest.raises(ParameterError):
            ModelParams.from_mapping({'slantedTextPlate': 'maybe'})

    def test_integer_field(self):
        assert BracketParams.from_mapping({'ribCount': '4'}).rib_count == 4
        with pytest.raises(ParameterError):
            BracketParams.from_mapping({'ribCount': '2.5'})


class TestValidation:

    @pytest.mark.parametrize('field', ['width', 'plate_depth', 'thickness', 'font_size', 'edge_width'])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ParameterError):
            ModelParams(**{field: 0})

    @pytest.mark.parametrize('pct', [-1, 100.5, 250])
    def test_truncate_out_of_range_rejected(self, pct):
        with pytest.raises(ParameterError):
            ModelParams(truncate_pct=pct)

    def test_truncate_bounds_accepted(self):
        assert ModelParams(truncate_pct=0).truncate_pct == 0
        assert ModelParams(truncate_pct=100).truncate_pct == 100

    def test_margin_too_wide(self):
        with pytest.raises(ParameterError):
            ModelParams(width=10, margin=5)

    def test_nan_rejected(self):
        with pytest.raises(ParameterError):
            ModelParams(map_rotation=float('nan'))

    def test_bracket_validation(self):
        with pytest.raises(ParameterError):
            BracketParams(depth=-1)
        with pytest.raises(ParameterError):
            BracketParams(rib_count=-1)
        # a hole that clamps away is not a parameter error
        assert BracketParams(hole_diameter=0).hole_diameter == 0


class TestQueryString:

    def test_round_trip(self):
        params = ModelParams(title='Century *100*', map_rotation=45, slanted_text_plate=True)
        assert ModelParams.from_query(params.to_query()) == params

    def test_camel_case_keys(self):
        query = ModelParams(max_polyline_height=12.5).to_query()
        assert "maxPolylineHeight=12.5" in query
        assert 'font=' not in query

    def test_leading_question_mark(self):
        assert ModelParams.from_query('?width=70').width == 70


def test_from_env():
    environ = {
        'PLATEGEN_WIDTH': '70',
        'PLATEGEN_SLANTED_TEXT_PLATE': 'true',
        'HOME': '/root',
    }
    params = ModelParams.from_env(environ=environ)
    assert params.width == 70
    assert params.slanted_text_plate is True


class TestPresets:

    def test_yaml(self, tmp_path):
        path = tmp_path / 'preset.yaml'
        path.write_text('title: Hill climb\nwidth: 80\nmapRotation: 90\n')
        params = load_params(path)
        assert params.title == 'Hill climb'
        assert params.width == 80
        assert params.map_rotation == 90

    def test_json_bracket(self, tmp_path):
        path = tmp_path / 'bracket.json'
        path.write_text(json.dumps({'width': 40, 'hasBottom': True}))
        params = load_params(path, BracketParams)
        assert params.width == 40
        assert params.has_bottom is True

    def test_save_and_load(self, tmp_path):
        params = ModelParams(title='Saved', truncate_pct=75)
        path = tmp_path / 'presets' / 'saved.yml'
        save_params(params, path)
        assert load_params(path) == params

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / 'preset.toml'
        path.write_text('width = 1\n')
        with pytest.raises(ParameterError):
            load_params(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text('- 1\n- 2\n')
        with pytest.raises(ParameterError):
            load_params(path)
