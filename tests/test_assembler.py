"""Tests for grouping rows into products."""

import pytest

from catalog_ingest.assembler import (
    AssemblerConfig, MIN_ROWS_MESSAGE, ProductAssembler,
    find_cross_product_duplicate_skus, validate_parsed_product,
)
from catalog_ingest.csv_parser import parse_csv_content
from catalog_ingest.errors import CSVStructureError
from catalog_ingest.models import (
    ParsedProduct, ParsedVariant, PriceUnit, ProductStatus,
)


IMAGE_HEADER = "Handle,Title,Variant SKU,Variant Price,Image Src,Image Position\n"


class TestScenario:
    """The two-row shirt import."""

    def test_one_product_two_variants_one_image(self, assembler, scenario_csv):
        result = assembler.parse(scenario_csv)

        assert len(result.products) == 1
        product = result.products[0]
        assert product.handle == "shirt-1"
        assert product.title == "Red Shirt"
        assert [(v.sku, v.price) for v in product.variants] == [("RED-01", 1999), ("BLUE-01", 2099)]
        assert [(img.src, img.position) for img in product.images] == [("http://x/img.jpg", 1)]

    def test_counts_and_validity(self, assembler, scenario_csv):
        result = assembler.parse(scenario_csv)
        assert result.total_rows == 2
        assert result.total_variants == 2
        assert result.total_images == 1
        assert result.is_valid

    def test_best_practice_gaps_are_warnings(self, assembler, scenario_csv):
        result = assembler.parse(scenario_csv)
        assert 'Product "shirt-1": no description' in result.warnings
        assert 'Product "shirt-1": no tags' in result.warnings
        assert result.errors == []


class TestGrouping:

    def test_images_deduplicated_and_sorted(self, assembler):
        content = IMAGE_HEADER + (
            "p,Poster,S1,100,http://x/b.jpg,2\n"
            "p,,S2,100,http://x/a.jpg,1\n"
            "p,,S3,100,http://x/b.jpg,2\n"
        )
        product = assembler.parse(content).products[0]
        assert [img.src for img in product.images] == ["http://x/a.jpg", "http://x/b.jpg"]
        assert [v.sku for v in product.variants] == ["S1", "S2", "S3"]

    def test_same_src_different_position_kept(self, assembler):
        content = IMAGE_HEADER + (
            "p,Poster,S1,100,http://x/a.jpg,1\n"
            "p,,S2,100,http://x/a.jpg,2\n"
        )
        assert len(assembler.parse(content).products[0].images) == 2

    def test_every_row_adds_a_variant(self, assembler):
        content = IMAGE_HEADER + (
            "shirt-1,Red Shirt,RED-01,1999,,\n"
            "shirt-1,,,,http://x/2.jpg,2\n"
        )
        product = assembler.parse(content).products[0]
        assert len(product.variants) == 2
        assert product.variants[1].sku is None
        assert product.variants[1].price == 0
        assert [img.position for img in product.images] == [2]

    def test_image_only_rows_when_enabled(self, detector):
        assembler = ProductAssembler(detector=detector, config=AssemblerConfig(image_only_rows=True))
        content = IMAGE_HEADER + (
            "p,Poster,S1,100,http://x/a.jpg,1\n"
            "p,,,,http://x/b.jpg,2\n"
        )
        product = assembler.parse(content).products[0]
        assert len(product.variants) == 1
        assert len(product.images) == 2

    def test_first_row_always_has_a_variant(self, assembler):
        content = IMAGE_HEADER + "p,Poster,,,http://x/a.jpg,1\n"
        product = assembler.parse(content).products[0]
        assert len(product.variants) == 1
        assert product.variants[0].sku is None
        assert product.variants[0].price == 0

    def test_products_in_first_appearance_order(self, assembler):
        content = IMAGE_HEADER + (
            "b,B,B1,1,,\n"
            "a,A,A1,1,,\n"
            "b,,B2,1,,\n"
        )
        result = assembler.parse(content)
        assert [p.handle for p in result.products] == ["b", "a"]
        assert len(result.products[0].variants) == 2

    def test_group_accepts_raw_header_row(self, assembler):
        rows = parse_csv_content("Handle,Title\nx,X\nx,\n")
        grouped = assembler.group(rows[1:], rows[0])
        assert list(grouped) == ["x"]
        assert len(grouped["x"].variants) == 2

    def test_missing_handle_row_skipped(self, assembler):
        content = IMAGE_HEADER + (
            "p,Poster,S1,100,,\n"
            ",Orphan,S9,100,,\n"
        )
        result = assembler.parse(content)
        assert len(result.products) == 1
        assert "Row 3: missing Handle, row skipped" in result.warnings

    def test_option_names_inherited_from_first_variant(self, assembler):
        content = (
            "Handle,Title,Option1 Name,Option1 Value,Variant SKU\n"
            "tee,Tee,Size,S,T-S\n"
            "tee,,,M,T-M\n"
        )
        variants = assembler.parse(content).products[0].variants
        assert variants[1].option1_name == "Size"
        assert variants[1].title == "M"

    def test_quoted_body_preserved(self, assembler):
        content = (
            'Handle,Title,Body (HTML),Tags\n'
            'p,Poster,"<p>One, two\nthree ""quoted""</p>","art, decor,, wall "\n'
        )
        product = assembler.parse(content).products[0]
        assert product.body_html == '<p>One, two\nthree "quoted"</p>'
        assert product.tags == ["art", "decor", "wall"]


class TestProductFields:

    def test_category_column_outranks_type(self, assembler):
        content = "Handle,Title,Product Category,Type\np,Coffee Mug,Wall Art,Poster\n"
        product = assembler.parse(content).products[0]
        assert product.category_hint == "Wall Art"
        assert product.product_type == "Poster"
        assert product.category_name == "Wall Art"
        assert product.category_confidence == 100

    def test_type_doubles_as_hint(self, assembler):
        content = "Handle,Title,Type\np,Coffee Mug,Poster\n"
        product = assembler.parse(content).products[0]
        assert product.category_hint == "Poster"
        assert product.category_name == "Poster"

    def test_no_hint_runs_classifier(self, assembler):
        content = "Handle,Title,Tags\ncoffee-mug,Coffee Mug,\"mug, cup\"\n"
        product = assembler.parse(content).products[0]
        assert product.category_hint is None
        assert product.category_name == "Mugs"
        assert product.category_confidence == 100

    def test_classification_disabled_keeps_hint(self, detector):
        assembler = ProductAssembler(detector=detector, config=AssemblerConfig(classify=False))
        content = "Handle,Title,Type\np,Coffee Mug,\n"
        product = assembler.parse(content).products[0]
        assert product.category_name is None
        assert product.category_confidence is None

    @pytest.mark.parametrize("published, status_cell, expected", [
        ("TRUE", "", ProductStatus.ACTIVE),
        ("no", "", ProductStatus.DRAFT),
        ("TRUE", "archived", ProductStatus.ARCHIVED),
    ])
    def test_status_resolution(self, assembler, published, status_cell, expected):
        content = f"Handle,Title,Published,Status\np,Poster,{published},{status_cell}\n"
        assert assembler.parse(content).products[0].status == expected

    def test_unknown_status_warns(self, assembler):
        content = "Handle,Title,Published,Status\np,Poster,yes,weird\n"
        result = assembler.parse(content)
        assert result.products[0].status == ProductStatus.ACTIVE
        assert "Row 2: unknown status 'weird', derived from Published" in result.warnings


class TestRowWarnings:

    def test_short_row_padded(self, assembler):
        content = "Handle,Title,Vendor,Variant SKU\np,Poster\n"
        result = assembler.parse(content)
        assert "Row 2: expected 4 columns, found 2" in result.warnings
        assert result.products[0].vendor is None

    def test_long_row_truncated(self, assembler):
        content = "Handle,Title\np,Poster,extra,cells\n"
        result = assembler.parse(content)
        assert "Row 2: expected 2 columns, found 4" in result.warnings
        assert result.products[0].title == "Poster"

    def test_invalid_number_is_absent_with_warning(self, assembler):
        content = "Handle,Title,Variant Price,Variant Inventory Qty\np,Poster,abc,-3\n"
        result = assembler.parse(content)
        variant = result.products[0].variants[0]
        assert variant.price == 0
        assert variant.inventory_qty == 0
        assert "Row 2: invalid Variant Price 'abc'" in result.warnings
        assert "Row 2: invalid Variant Inventory Qty '-3'" in result.warnings

    @pytest.mark.parametrize("unit", [PriceUnit.MINOR, PriceUnit.MAJOR])
    def test_huge_price_is_absent_and_batch_continues(self, detector, unit):
        assembler = ProductAssembler(detector=detector, config=AssemblerConfig(price_unit=unit))
        content = "Handle,Title,Variant Price\na,Mug,19\nb,Poster,1e999999\nc,Lamp,5\n"
        result = assembler.parse(content)

        assert [p.handle for p in result.products] == ["a", "b", "c"]
        assert result.products[1].variants[0].price == 0
        assert "Row 3: invalid Variant Price '1e999999'" in result.warnings
        assert result.products[2].variants[0].price == (500 if unit == PriceUnit.MAJOR else 5)

    def test_image_position_below_one(self, assembler):
        content = IMAGE_HEADER + "p,Poster,S1,1,http://x/a.jpg,0\n"
        result = assembler.parse(content)
        assert result.products[0].images[0].position == 1
        assert "Row 2: image position 0 below 1, using 1" in result.warnings

    def test_major_price_unit(self, detector):
        assembler = ProductAssembler(detector=detector, config=AssemblerConfig(price_unit=PriceUnit.MAJOR))
        content = "Handle,Title,Variant Price,Variant Compare At Price\np,Poster,19.99,$24.50\n"
        variant = assembler.parse(content).products[0].variants[0]
        assert variant.price == 1999
        assert variant.compare_at_price == 2450


class TestStructuralErrors:

    def test_header_only(self, assembler):
        with pytest.raises(CSVStructureError) as exc:
            assembler.parse("Handle,Title\n")
        assert str(exc.value) == MIN_ROWS_MESSAGE

    def test_blank_rows_do_not_count(self, assembler):
        with pytest.raises(CSVStructureError):
            assembler.parse("Handle,Title\n\n,\n")

    def test_missing_required_header(self, assembler):
        with pytest.raises(CSVStructureError) as exc:
            assembler.parse("Handle,Vendor\np,Acme\n")
        assert "Missing required headers: Title" in str(exc.value)

    def test_lenient_quotes_configurable(self, detector):
        assembler = ProductAssembler(detector=detector, config=AssemblerConfig(strict_quotes=False))
        result = assembler.parse('Handle,Title\np,"Unclosed title')
        assert result.products[0].title == "Unclosed title"


class TestValidation:

    def test_missing_title_is_error(self):
        product = ParsedProduct(handle="p", variants=[ParsedVariant()])
        errors, _ = validate_parsed_product(product)
        assert errors == ['Product "p": title is required']

    def test_title_too_long(self):
        product = ParsedProduct(handle="p", title="x" * 256, variants=[ParsedVariant()])
        errors, _ = validate_parsed_product(product)
        assert errors == ['Product "p": title exceeds 255 characters']

    def test_duplicate_and_malformed_skus_warn(self):
        product = ParsedProduct(handle="p", title="P", variants=[
            ParsedVariant(sku="RED 01"), ParsedVariant(sku="RED 01"),
        ])
        errors, warnings = validate_parsed_product(product)
        assert errors == []
        assert 'Product "p": duplicate SKU "RED 01" will be renamed on import' in warnings
        assert any("should only contain letters" in w for w in warnings)

    def test_limits_warn(self):
        config = AssemblerConfig(max_price=100, max_inventory=5)
        product = ParsedProduct(handle="p", title="P", variants=[
            ParsedVariant(price=101, inventory_qty=6),
        ])
        _, warnings = validate_parsed_product(product, config)
        assert 'Product "p": variant 1 price 101 exceeds 100' in warnings
        assert 'Product "p": variant 1 inventory exceeds 5' in warnings

    def test_cross_product_duplicates(self):
        products = [
            ParsedProduct(handle="a", variants=[ParsedVariant(sku="X"), ParsedVariant(sku="X")]),
            ParsedProduct(handle="b", variants=[ParsedVariant(sku="X")]),
            ParsedProduct(handle="c", variants=[ParsedVariant(sku="Y")]),
        ]
        assert find_cross_product_duplicate_skus(products) == [
            'SKU "X" appears in multiple products (a, b) and will be renamed on import'
        ]

    def test_parse_reports_cross_product_duplicates(self, assembler):
        content = IMAGE_HEADER + "a,A,DUP,1,,\nb,B,DUP,1,,\n"
        result = assembler.parse(content)
        assert any('SKU "DUP" appears in multiple products' in w for w in result.warnings)
        assert result.is_valid
