"""Markdown → reveal tree."""

from chat_widget.richtext import parse_markdown, split_words


class TestSplitWords:
    def test_keeps_whitespace_runs(self):
        assert split_words("Hello  big\nworld") == ["Hello", "  ", "big", "\n", "world"]

    def test_leading_and_trailing_space(self):
        assert split_words(" a ") == [" ", "a", " "]

    def test_empty(self):
        assert split_words("") == []


class TestParseMarkdown:
    def test_everything_starts_hidden(self):
        doc = parse_markdown("Hello **bold** world")
        assert len(doc) > 0
        assert all(unit.hidden for unit in doc.units)
        assert doc.visible_text() == ""

    def test_units_are_in_document_order(self):
        doc = parse_markdown("# Title\n\nFirst para\n\n- one\n- two")
        tags = [u.tag for u in doc.units]
        assert tags[0] == "h1"
        assert tags.index("p") < tags.index("ul") < tags.index("li")
        words = [u.plain_text() for u in doc.units if u.tag == "span" and u.plain_text().strip()]
        assert words == ["Title", "First", "para", "one", "two"]

    def test_inline_formatting_is_not_a_unit(self):
        doc = parse_markdown("a **b** c")
        assert "strong" not in [u.tag for u in doc.units]
        assert "<strong>" in doc.to_html()

    def test_revealing_units_shows_text(self):
        doc = parse_markdown("two words")
        for unit in doc.units:
            unit.opacity = 1
        assert doc.visible_text() == "two words"
        assert "opacity: 1" in doc.to_html()

    def test_code_and_breaks(self):
        doc = parse_markdown("line one\nline two\n\n```\nx = 1\n```")
        html = doc.to_html()
        assert "<br" in html
        assert "<pre" in html and "x = 1" in html

    def test_html_is_escaped_not_rendered(self):
        doc = parse_markdown("<script>alert(1)</script>")
        assert "<script>" not in doc.to_html()

    def test_table_and_strikethrough_enabled(self):
        doc = parse_markdown("| a | b |\n|---|---|\n| 1 | 2 |\n\n~~gone~~")
        html = doc.to_html()
        assert "<table" in html
        assert "<s>" in html or "<s " in html
