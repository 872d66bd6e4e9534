"""
Settings loader tests.

The bundled settings must parse; environment overrides win over the file;
catalog inconsistencies are refused at load time.
"""

import pytest
import yaml

from workflow_config import DEFAULT_SETTINGS_PATH, get_active_settings
from workflow_config.loader import compute_checksum, load_yaml_file, parse_catalog
from workflow_config.schema import QueueSettings


class TestBundledSettings:

    def test_loads(self):
        settings = get_active_settings(environ={})

        assert len(settings.catalog.departments) == 7
        assert len(settings.catalog.workflow_types) == 9
        assert settings.queues.default_page_size == 10
        assert settings.log_level == "INFO"

    def test_every_type_starts_at_its_owner(self):
        catalog = get_active_settings(environ={}).catalog
        for wt in catalog.workflow_types:
            assert wt.steps[0] == wt.owning_department
            assert len(wt.steps) >= 2

    def test_checksum_is_stable(self):
        data = load_yaml_file(DEFAULT_SETTINGS_PATH)
        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))
        assert get_active_settings(environ={}).checksum == compute_checksum(data)


class TestOverrides:

    def test_environment_wins(self, tmp_path):
        settings = get_active_settings(
            environ={
                "WORKFLOW_DATABASE_URL": "sqlite:///override.db",
                "WORKFLOW_ATTACHMENT_ROOT": str(tmp_path),
                "WORKFLOW_LOG_LEVEL": "debug",
            }
        )
        assert settings.database_url == "sqlite:///override.db"
        assert settings.attachment_root == str(tmp_path)
        assert settings.log_level == "DEBUG"

    def test_database_url_fallback(self):
        settings = get_active_settings(environ={"DATABASE_URL": "postgresql://localhost/wf"})
        assert settings.database_url == "postgresql://localhost/wf"

    def test_explicit_path(self, tmp_path):
        data = load_yaml_file(DEFAULT_SETTINGS_PATH)
        data["student_email_domain"] = "uni.example"
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")

        assert get_active_settings(path, environ={}).student_email_domain == "uni.example"

    def test_path_from_environment(self, tmp_path):
        path = tmp_path / "missing.yaml"
        with pytest.raises(FileNotFoundError):
            get_active_settings(environ={"WORKFLOW_CONFIG": str(path)})


class TestCatalogValidation:

    DEPARTMENTS = [
        {"code": "a", "name": "A", "role": "academic_department"},
        {"code": "b", "name": "B", "role": "council"},
    ]

    def _catalog(self, departments=None, workflow_types=None):
        return {
            "departments": self.DEPARTMENTS if departments is None else departments,
            "workflow_types": workflow_types or [],
        }

    def test_valid(self):
        catalog = parse_catalog(self._catalog(workflow_types=[
            {"code": "t", "name": "T", "owning_department": "a", "steps": ["a", "b"]},
        ]))
        assert catalog.department("b").role == "council"

    @pytest.mark.parametrize(
        "workflow_type",
        [
            {"code": "t", "name": "T", "owning_department": "a", "steps": []},
            {"code": "t", "name": "T", "owning_department": "zz", "steps": ["a"]},
            {"code": "t", "name": "T", "owning_department": "a", "steps": ["a", "zz"]},
        ],
    )
    def test_inconsistent_types(self, workflow_type):
        with pytest.raises(ValueError):
            parse_catalog(self._catalog(workflow_types=[workflow_type]))

    def test_duplicate_department_codes(self):
        with pytest.raises(ValueError):
            parse_catalog(self._catalog(departments=self.DEPARTMENTS + self.DEPARTMENTS[:1]))

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            parse_catalog(self._catalog(departments=[{"code": "a", "name": "A", "role": "dean"}]))

    def test_missing_key(self):
        with pytest.raises(KeyError):
            parse_catalog(self._catalog(departments=[{"code": "a", "name": "A"}]))


class TestQueueSettings:

    def test_page_size_bounds(self):
        with pytest.raises(ValueError):
            QueueSettings(default_page_size=0)
        with pytest.raises(ValueError):
            QueueSettings(default_page_size=20, max_page_size=10)
