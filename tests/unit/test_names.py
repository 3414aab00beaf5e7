"""상품명 검증 유닛 테스트"""
import pytest

from src.crawlers.extraction.names import clean_name, is_valid_name


class TestIsValidName:
    """UI 문구 필터"""

    @pytest.mark.parametrize(
        "name",
        [
            "Amul Taaza Toned Milk 500ml",
            "Tata Salt Iodised 1kg",
            "Fresho Banana Robusta 1 kg",
        ],
    )
    def test_valid_names(self, name):
        assert is_valid_name(name) is True

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "Add",
            "Add to cart",
            "ADD TO CART",
            "Search results",
            "Delivery in 10 mins",
            "10 mins",
            "₹120",
            "1,299",
            "50% off",
            "Bestseller",
            "Out of stock",
            "x" * 151,
        ],
    )
    def test_invalid_names(self, name):
        assert is_valid_name(name) is False

    def test_ui_phrase_prefix(self):
        """UI 문구로 시작하는 이름도 제외"""
        assert is_valid_name("Notify me when available") is False


class TestCleanName:
    def test_strips_whitespace_and_punctuation(self):
        assert clean_name("  Amul   Butter 100g - ") == "Amul Butter 100g"
        assert clean_name("• Fresh Paneer 200g |") == "Fresh Paneer 200g"
