import re

import pytest

from salesdesk.models import Product
from salesdesk.services import codes


def test_generated_codes_have_the_expected_shape():
    assert re.fullmatch(r"p_[A-Za-z0-9]{12}", codes.generate_product_slug())
    assert re.fullmatch(r"REF_[A-Za-z0-9]{10}", codes.generate_referral_code())


def test_unique_code_retries_on_collision(make_product):
    make_product(slug="p_takentaken1")
    draws = iter(["p_takentaken1", "p_freefreefr1"])
    assert codes.unique_code(Product.slug, lambda: next(draws)) == "p_freefreefr1"


def test_unique_code_gives_up(make_product):
    make_product(slug="p_takentaken1")
    with pytest.raises(RuntimeError):
        codes.unique_code(Product.slug, lambda: "p_takentaken1", max_attempts=3)
