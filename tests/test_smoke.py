"""Public smoke tests for basic module wiring.

Keep these minimal and free of any real-world data.
"""

from __future__ import annotations


def test_imports() -> None:
    import avkosten.application.invoices
    import avkosten.application.project
    import avkosten.cli.main
    import avkosten.domain
    import avkosten.invoice
    import avkosten.report
    import avkosten.runtime

    assert avkosten.application.invoices is not None
    assert avkosten.application.project is not None
    assert avkosten.cli.main is not None
    assert avkosten.domain is not None
    assert avkosten.invoice is not None
    assert avkosten.report is not None
    assert avkosten.runtime is not None


def test_package_data_is_present() -> None:
    from avkosten.runtime import get_paths

    paths = get_paths()
    assert paths.default_categories.is_file()
    assert paths.demo_project.is_file()
