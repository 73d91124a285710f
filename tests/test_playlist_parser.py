"""
Tests for the M3U playlist parser
"""
import pytest

from epg_engine.epg_types import Channel, StreamSource
from epg_engine.services.playlist_parser_service import guess_media_type, parse_attributes, parse_m3u


class TestParseM3U:
    """Tests for parse_m3u"""

    def test_single_channel_with_attributes(self):
        """Attributes, display name and URL land on the channel"""
        text = '#EXTINF:tvg-id="1" tvg-logo="l.png" group-title="News",BBC\nhttp://x/bbc.m3u8'

        channels = parse_m3u(text)

        assert len(channels) == 1
        channel = channels[0]
        assert channel.id == "1"
        assert channel.name == "BBC"
        assert channel.logo == "l.png"
        assert channel.poster == "l.png"
        assert channel.category == "News"
        assert channel.stream_url == "http://x/bbc.m3u8"
        assert channel.live is True
        assert channel.sources == (StreamSource(url="http://x/bbc.m3u8", media_type="application/x-mpegURL"),)

    def test_one_channel_per_directive_even_without_url(self):
        """Directives without a following URL still produce channels"""
        text = "\n".join([
            "#EXTM3U",
            '#EXTINF:-1 tvg-id="a",Alpha',
            '#EXTINF:-1 tvg-id="b",Beta',
            "http://x/beta.ts",
            '#EXTINF:-1 tvg-id="c",Gamma',
        ])

        channels = parse_m3u(text)

        assert [c.id for c in channels] == ["a", "b", "c"]
        assert channels[0].stream_url is None
        assert channels[0].sources == ()
        assert channels[1].stream_url == "http://x/beta.ts"
        assert channels[2].stream_url is None

    def test_skips_blank_and_comment_lines_before_url(self):
        """Blank lines and other '#' lines between directive and URL are ignored"""
        text = '#EXTINF:-1 tvg-id="a",Alpha\n\n#EXTVLCOPT:http-user-agent=foo\n   \nhttp://x/a.m3u8\n'

        channels = parse_m3u(text)

        assert channels[0].stream_url == "http://x/a.m3u8"

    def test_malformed_directive_is_skipped(self):
        """A directive without a comma contributes nothing and parsing continues"""
        text = "\n".join([
            '#EXTINF:-1 tvg-id="broken"',
            "http://x/broken.m3u8",
            '#EXTINF:-1 tvg-id="ok",Okay',
            "http://x/ok.m3u8",
        ])

        channels = parse_m3u(text)

        assert [c.id for c in channels] == ["ok"]
        assert channels[0].stream_url == "http://x/ok.m3u8"

    def test_lookalike_tags_are_plain_comments(self):
        """Only '#EXTINF:' opens a channel; similar tags neither add channels nor end the URL search"""
        text = "\n".join([
            '#EXTINF:-1 tvg-id="a",Alpha',
            '#EXTINFO:-1 tvg-id="x",Extra',
            "#EXTINF,No Colon",
            "http://x/a.m3u8",
            '#EXTINFX tvg-id="y",Other',
            "http://x/other.m3u8",
        ])

        channels = parse_m3u(text)

        assert [c.id for c in channels] == ["a"]
        assert channels[0].stream_url == "http://x/a.m3u8"

    def test_defaults_when_attributes_missing(self):
        """Missing tvg-id gets a generated id and category falls back"""
        channels = parse_m3u("#EXTINF:-1,Plain\nhttp://x/plain")

        channel = channels[0]
        assert channel.id
        assert channel.name == "Plain"
        assert channel.category == "Uncategorized"
        assert channel.logo is None

    def test_generated_ids_differ_between_parses(self):
        """Fallback ids are fresh on every parse"""
        text = "#EXTINF:-1,Plain\nhttp://x/plain"

        assert parse_m3u(text)[0].id != parse_m3u(text)[0].id

    def test_name_falls_back_to_tvg_name(self):
        """Empty display name uses tvg-name, then 'Unknown'"""
        text = '#EXTINF:-1 tvg-name="From Attr",\nhttp://x/1\n#EXTINF:-1,\nhttp://x/2'

        channels = parse_m3u(text)

        assert channels[0].name == "From Attr"
        assert channels[1].name == "Unknown"

    def test_raw_attributes_kept_in_metadata(self):
        """All attributes are kept, recognized or not"""
        text = '#EXTINF:-1 tvg-id="1" tvg-chno="7" catchup="default",One\nhttp://x/1'

        channel = parse_m3u(text)[0]

        assert channel.metadata["raw_attrs"] == {"tvg-id": "1", "tvg-chno": "7", "catchup": "default"}

    def test_windows_line_endings(self):
        """CRLF playlists parse like LF ones"""
        text = '#EXTM3U\r\n#EXTINF:-1 tvg-id="1",One\r\nhttp://x/1.m3u8\r\n'

        channels = parse_m3u(text)

        assert channels[0].name == "One"
        assert channels[0].stream_url == "http://x/1.m3u8"

    def test_empty_text(self):
        """No directives, no channels"""
        assert parse_m3u("") == []
        assert parse_m3u("#EXTM3U\n") == []

    def test_returns_channel_records(self):
        """Output items are Channel values"""
        assert all(isinstance(c, Channel) for c in parse_m3u("#EXTINF:-1,A\nhttp://a"))


class TestParseAttributes:
    """Tests for parse_attributes"""

    def test_extracts_quoted_pairs(self):
        assert parse_attributes('-1 tvg-id="x" group-title="Sports"') == {"tvg-id": "x", "group-title": "Sports"}

    def test_unquoted_values_ignored(self):
        assert parse_attributes("tvg-id=x") == {}


class TestGuessMediaType:
    """Tests for guess_media_type"""

    @pytest.mark.parametrize("url,expected", [
        ("http://x/live.m3u8", "application/x-mpegURL"),
        ("http://x/live.M3U8?token=abc", "application/x-mpegURL"),
        ("http://x/manifest.mpd", "application/dash+xml"),
        ("http://x/movie.mp4", "video/mp4"),
        ("http://x/stream.ts", "video/mp2t"),
        ("http://x/stream", None),
    ])
    def test_known_extensions(self, url, expected):
        assert guess_media_type(url) == expected
