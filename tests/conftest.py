"""
Pytest configuration for local imports and shared fixtures.
"""

# Standard Library
import os
import sys

# PIP3 modules
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

import barcode_label_engine.compose


#============================================
@pytest.fixture
def sample_products() -> list:
	"""
	Products shaped like the inventory API sample data.
	"""
	return [
		barcode_label_engine.compose.ProductRecord(
			product_id="p1",
			name="iPhone 15 Pro",
			sku="APL-IP15P-128",
			selling_price=134900,
			category="Electronics",
			current_stock=25,
			barcode="123456789012",
			brand="Apple",
		),
		barcode_label_engine.compose.ProductRecord(
			product_id="p2",
			name="Wireless Earbuds",
			sku="AUD-WEB-001",
			selling_price=19999,
			category="Audio",
			current_stock=8,
			barcode="400638133393",
		),
		barcode_label_engine.compose.ProductRecord(
			product_id="p3",
			name="USB-C Cable",
			sku="ACC-USBC-1M",
			selling_price=499.5,
			category="Accessories",
			current_stock=120,
		),
	]
