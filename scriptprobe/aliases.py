"""
Display-name to package-identity mapping.

Detectors report libraries under their display names ("Jquery", "moment.js",
"angularjs"); the registry and vulnerability database know them under their
published package names ("jquery", "moment", "angular").
"""

from __future__ import annotations

from collections.abc import Mapping

from scriptprobe.versions import is_concrete, normalize_version


DEFAULT_ALIASES: dict[str, str] = {
    "angularjs": "angular",
    "angular": "@angular/core",
    "angular.js": "angular",
    "moment.js": "moment",
    "underscore.js": "underscore",
    "backbone.js": "backbone",
    "three.js": "three",
    "ember": "ember-source",
    "ember.js": "ember-source",
    "foundation": "foundation-sites",
    "knockout.js": "knockout",
    "handlebars.js": "handlebars",
    "vue.js": "vue",
    "react.js": "react",
    "d3.js": "d3",
    "jquery.js": "jquery",
    "jquery-ui-dialog": "jquery-ui",
    "jquery-ui-autocomplete": "jquery-ui",
    "jquery-ui-tooltip": "jquery-ui",
}

# name -> (first major published under the aliased package, package before it)
# AngularJS (1.x) kept the "angular" package; Angular 2+ moved to @angular/core
DEFAULT_LEGACY_PACKAGES: dict[str, tuple[int, str]] = {
    "angular": (2, "angular"),
}


class AliasTable:
    """
    Case-insensitive alias lookup.

    Built once at startup and passed to the resolvers; names without an
    alias resolve to their lowercased, trimmed display name. A name whose
    package changed at some major version resolves to the older package
    when the version is below that major or unknown.
    """

    def __init__(
        self,
        aliases: Mapping[str, str] | None = None,
        legacy_packages: Mapping[str, tuple[int, str]] | None = None,
    ) -> None:
        source = DEFAULT_ALIASES if aliases is None else aliases
        self._aliases = {k.lower().strip(): v for k, v in source.items()}
        if legacy_packages is None:
            legacy_packages = DEFAULT_LEGACY_PACKAGES if aliases is None else {}
        self._legacy = {k.lower().strip(): v for k, v in legacy_packages.items()}

    def package_for(self, display_name: str, version: str | None = None) -> str:
        """Canonical package identity for a detected display name and version."""
        key = str(display_name).lower().strip()
        legacy = self._legacy.get(key)
        if legacy is not None:
            first_major, package = legacy
            if not is_concrete(version) or normalize_version(version)[0] < first_major:
                return package
        return self._aliases.get(key, key)

    def same_package(self, a: str, b: str, version: str | None = None) -> bool:
        return self.package_for(a, version) == self.package_for(b, version)

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, display_name: object) -> bool:
        return isinstance(display_name, str) and display_name.lower().strip() in self._aliases
