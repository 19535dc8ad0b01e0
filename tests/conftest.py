"""Shared test fixtures for Prediction Validation Engine tests."""

import copy

import pytest
from pathlib import Path

from prediction_validation.config import build_config, default_config
from prediction_validation.verdict import validate_event

# Project root
ROOT = Path(__file__).parent.parent

# Path to knowledge files
KNOWLEDGE_DIR = ROOT / "prediction_validation" / "knowledge"
RULES_PATH = KNOWLEDGE_DIR / "validation_rules.yaml"


@pytest.fixture
def knowledge_dir():
    """Path to the bundled knowledge directory."""
    return KNOWLEDGE_DIR


@pytest.fixture
def config():
    """The bundled validation rules."""
    return default_config()


@pytest.fixture
def minimal_rules():
    """Smallest rules document build_config() accepts.

    Tests copy and tweak it to exercise individual validation errors.
    """
    return copy.deepcopy({
        "parameter_classes": {
            "locale": {"names": ["lang"]},
            "numeric": {"names": ["amount"]},
            "identifier": {"suffixes": ["_id"]},
            "mode": {"names": ["channel"]},
            "group_label": {"names": ["content_group"]},
            "quantity": {"names": ["amount"]},
            "derivable": {"prefixes": ["product_"]},
        },
        "group_aliases": {"PDP": "PRODUCT_DETAIL", "OTHER": "OTHERS"},
    })


@pytest.fixture
def minimal_config(minimal_rules):
    return build_config(minimal_rules, source="test")


@pytest.fixture
def product_page():
    """Product detail page where every difference is only a formatting artifact."""
    return {
        "page_url": "https://shop.example.com/kr/ko/product/detail?prdCode=A100",
        "group_label": "PDP",
        "events": [
            {
                "event_name": "page_view",
                "predictions": {
                    "site_language": "ko",
                    "content_group": "PDP",
                    "price": "135,000",
                },
                "actuals": {
                    "site_language": "ko-KR",
                    "content_group": "OTHERS",
                    "price": "135000",
                },
            }
        ],
    }


@pytest.fixture
def noisy_home_page():
    """Home page with a stray test event at 0.0005% of traffic."""
    return {
        "page_url": "https://shop.example.com/",
        "event_counts": [
            {"event_name": "page_view", "event_count": 900000},
            {"event_name": "add_to_cart", "event_count": 99995},
            {"event_name": "test_event", "event_count": 5},
        ],
        "events": [
            {
                "event_name": "page_view",
                "predictions": {"content_group": "MAIN"},
                "actuals": {"content_group": "HOME"},
            },
            {
                "event_name": "test_event",
                "predictions": {"debug_flag": "1"},
                "actuals": {"debug_flag": "2"},
            },
        ],
    }


@pytest.fixture
def brand_mismatch_results(config):
    """Two add_to_cart results where item_brand mismatches on both pages."""
    return [
        validate_event(
            "add_to_cart",
            "https://shop.example.com/product/detail?prdCode=B200",
            "PRODUCT_DETAIL",
            {"site_language": "ko", "item_brand": "Nike", "site_name": "MALL"},
            {"site_language": "ko-KR", "item_brand": "Adidas", "site_name": "OUTLET"},
            config,
        ),
        validate_event(
            "add_to_cart",
            "https://shop.example.com/product/list?cat=shoes",
            "PRODUCT_LIST",
            {"site_language": "en", "item_brand": "Puma"},
            {"site_language": "en-US", "item_brand": "Reebok"},
            config,
        ),
    ]
