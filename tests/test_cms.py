"""
Tests for the CMS collaborators: record files, dot paths and the DatoCMS client.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import httpx

from datogpt.cms import DatoClient, load_record_file, save_record_file
from datogpt.cms.dato import parse_field
from datogpt.cms.memory import get_path, set_path
from datogpt.errors import AssetStoreError


RECORD_FILE = {
    "model": {"id": "post", "name": "Blog post", "api_key": "blog_post"},
    "locales": ["en", "it"],
    "current_locale": "it",
    "fieldsets": [{"id": "fs-1", "title": "Header", "position": 0}],
    "fields": [
        {"api_key": "title", "label": "Title", "field_type": "single_line", "position": 1, "localized": True},
        {"api_key": "blocks", "label": "Blocks", "field_type": "rich_text", "position": 2,
         "validators": {"rich_text_blocks": {"item_types": ["hero"]}}},
    ],
    "values": {"title": {"en": "Hello", "it": ""}, "blocks": []},
    "block_models": [
        {"id": "hero", "name": "Hero", "api_key": "hero",
         "fields": [{"api_key": "heading", "label": "Heading", "field_type": "single_line"}]},
    ],
}


class TestDotPaths(unittest.TestCase):
    """Test reading and writing values by dot path."""

    def test_get_path(self):
        data = {"title": {"en": "Hello"}, "blocks": [{"heading": "Hi"}]}

        self.assertEqual(get_path(data, "title.en"), "Hello")
        self.assertEqual(get_path(data, "blocks.0.heading"), "Hi")
        self.assertIsNone(get_path(data, "title.fr"))
        self.assertIsNone(get_path(data, "blocks.3.heading"))

    def test_set_path_creates_intermediate_dicts(self):
        data = {"title": ""}

        set_path(data, "title.it", "Ciao")
        set_path(data, "seo.en.title", "T")

        self.assertEqual(data, {"title": {"it": "Ciao"}, "seo": {"en": {"title": "T"}}})

    def test_set_path_into_list(self):
        data = {"blocks": [{"heading": "Hi"}]}

        set_path(data, "blocks.0.heading", "Salve")

        self.assertEqual(data["blocks"][0]["heading"], "Salve")


class TestRecordFile(unittest.TestCase):
    """Test loading and saving JSON record files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / "record.json"
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(RECORD_FILE, f)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_load(self):
        record, schema = load_record_file(str(self.path))

        self.assertEqual(record.model_name, "Blog post")
        self.assertEqual(record.locales(), ["en", "it"])
        self.assertEqual(record.current_locale, "it")
        self.assertEqual(record.field_schema("title").label, "Title")
        self.assertEqual(record.list_fieldsets()[0].title, "Header")
        self.assertEqual(schema.get_item_type("hero").name, "Hero")
        self.assertEqual([field.api_key for field in schema.list_fields("hero")], ["heading"])
        self.assertEqual([field.api_key for field in schema.list_fields("post")], ["title", "blocks"])

    def test_save_keeps_schema(self):
        record, _ = load_record_file(str(self.path))
        record.set_field_value("title.it", "Ciao")

        save_record_file(str(self.path), record)

        with open(self.path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        self.assertEqual(saved["values"]["title"], {"en": "Hello", "it": "Ciao"})
        self.assertEqual(saved["fields"], RECORD_FILE["fields"])


class TestParseField(unittest.TestCase):
    """Test turning CMA field resources into schemas."""

    def test_editor_takes_precedence(self):
        field = parse_field({
            "id": "f1",
            "attributes": {
                "api_key": "body",
                "label": "Body",
                "field_type": "text",
                "appearance": {"editor": "wysiwyg"},
                "position": 4,
                "localized": True,
                "validators": {},
                "hint": "Main text"
            },
            "relationships": {"fieldset": {"data": {"id": "fs-1", "type": "fieldset"}}}
        })

        self.assertEqual(field.field_type, "wysiwyg")
        self.assertEqual(field.position, 4)
        self.assertEqual(field.fieldset_id, "fs-1")
        self.assertTrue(field.localized)
        self.assertIsNone(field.validators)
        self.assertEqual(field.hint, "Main text")

    def test_without_appearance_or_fieldset(self):
        field = parse_field({"attributes": {"api_key": "count", "field_type": "integer"}})

        self.assertEqual(field.field_type, "integer")
        self.assertIsNone(field.fieldset_id)
        self.assertFalse(field.localized)


def api_response(data, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"data": data}
    response.text = json.dumps({"data": data})
    return response


class TestDatoClient(unittest.TestCase):
    """Test the DatoCMS client over a mocked transport."""

    def make_client(self):
        return DatoClient(api_token="token", api_base="https://site-api.example.com", poll_interval=0, poll_attempts=3)

    @patch('datogpt.cms.dato.httpx.Client')
    def test_list_fields_sorted_and_cached(self, mock_client):
        mock_client.return_value.request.return_value = api_response([
            {"attributes": {"api_key": "b", "field_type": "string", "position": 2}},
            {"attributes": {"api_key": "a", "field_type": "string", "position": 1}},
        ])
        client = self.make_client()

        self.assertEqual([field.api_key for field in client.list_fields("post")], ["a", "b"])
        client.list_fields("post")

        mock_client.return_value.request.assert_called_once_with(
            "GET", "https://site-api.example.com/item-types/post/fields"
        )

    @patch('datogpt.cms.dato.httpx.put')
    @patch('datogpt.cms.dato.httpx.Client')
    def test_create_asset_polls_job(self, mock_client, mock_put):
        transport = mock_client.return_value
        transport.request.side_effect = [
            api_response({"id": "slot-1", "attributes": {"url": "https://s3.example.com/slot-1"}}),
            api_response({"id": "job-1"}),
        ]
        transport.get.side_effect = [
            api_response(None, status_code=404),
            api_response({"attributes": {"status": 200, "payload": {"data": {"id": "upload-9"}}}}),
        ]
        metadata = {"en": {"title": "A tomato", "alt": "A red tomato", "custom_data": {}}}

        asset_id = self.make_client().create_asset(b"\x89PNG", "a-tomato.png", metadata)

        self.assertEqual(asset_id, "upload-9")
        self.assertEqual(mock_put.call_args[0][0], "https://s3.example.com/slot-1")
        self.assertEqual(mock_put.call_args.kwargs["content"], b"\x89PNG")
        upload_body = transport.request.call_args_list[1].kwargs["json"]
        self.assertEqual(upload_body["data"]["attributes"], {"path": "slot-1", "default_field_metadata": metadata})
        self.assertEqual(transport.get.call_count, 2)

    @patch('datogpt.cms.dato.httpx.put')
    @patch('datogpt.cms.dato.httpx.Client')
    def test_create_asset_job_never_finishes(self, mock_client, mock_put):
        transport = mock_client.return_value
        transport.request.side_effect = [
            api_response({"id": "slot-1", "attributes": {"url": "https://s3.example.com/slot-1"}}),
            api_response({"id": "job-1"}),
        ]
        transport.get.return_value = api_response(None, status_code=404)

        with self.assertRaises(AssetStoreError):
            self.make_client().create_asset(b"\x89PNG", "a-tomato.png", {})

        self.assertEqual(transport.get.call_count, 3)

    @patch('datogpt.cms.dato.httpx.Client')
    def test_http_error_becomes_asset_store_error(self, mock_client):
        response = api_response({}, status_code=422)
        response.raise_for_status.side_effect = httpx.HTTPStatusError("422", request=Mock(), response=response)
        mock_client.return_value.request.return_value = response

        with self.assertRaises(AssetStoreError):
            self.make_client().fetch_asset("upload-9")

    @patch('datogpt.cms.dato.httpx.Client')
    def test_fetch_asset(self, mock_client):
        mock_client.return_value.request.return_value = api_response({
            "id": "upload-9",
            "attributes": {"url": "https://cdn.example.com/upload-9/a-tomato.png", "filename": "a-tomato.png"}
        })

        asset = self.make_client().fetch_asset("upload-9")

        self.assertEqual(asset.filename, "a-tomato.png")
        self.assertEqual(asset.url, "https://cdn.example.com/upload-9/a-tomato.png")


if __name__ == '__main__':
    unittest.main()
