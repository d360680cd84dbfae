from __future__ import annotations

from pathlib import Path

import pytest

from j_dep_resolver.exceptions import PomModelError, PomNotFoundError, PomParseError
from j_dep_resolver.models import MavenProject
from j_dep_resolver.parser import has_placeholder, parse_pom, resolve_placeholders


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_parse_pom_without_namespace(tmp_path: Path) -> None:
    pom = """<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>

  <dependencies>
    <dependency>
      <groupId>org.slf4j</groupId>
      <artifactId>slf4j-api</artifactId>
      <version>2.0.12</version>
      <scope>compile</scope>
    </dependency>
  </dependencies>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)
    model = parse_pom(path)

    assert isinstance(model, MavenProject)
    assert model.group_id == "com.acme"
    assert model.artifact_id == "demo"
    assert model.version == "1.0.0"
    assert len(model.dependencies) == 1
    assert model.dependencies[0].gav.group_id == "org.slf4j"
    assert model.dependencies[0].gav.artifact_id == "slf4j-api"
    assert model.dependencies[0].gav.version == "2.0.12"


def test_parse_pom_with_namespace_filters_test_scope(tmp_path: Path) -> None:
    pom = """<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<project xmlns=\"http://maven.apache.org/POM/4.0.0\">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>

  <dependencies>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>4.13.2</version>
      <scope>test</scope>
      <optional>false</optional>
    </dependency>
  </dependencies>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)

    assert parse_pom(path).dependencies == []

    model = parse_pom(path, include_test=True)
    assert model.compact() == "com.acme:demo:1.0.0"
    assert len(model.dependencies) == 1
    dep = model.dependencies[0]
    assert dep.gav.compact() == "junit:junit:4.13.2"
    assert dep.scope == "test"
    assert dep.optional is False


def test_optional_and_provided_dependencies_are_skipped(tmp_path: Path) -> None:
    pom = """<project>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>
  <dependencies>
    <dependency>
      <groupId>org.example</groupId><artifactId>opt</artifactId><version>1</version>
      <optional>true</optional>
    </dependency>
    <dependency>
      <groupId>org.example</groupId><artifactId>prov</artifactId><version>1</version>
      <scope>provided</scope>
    </dependency>
    <dependency>
      <groupId>org.example</groupId><artifactId>rt</artifactId><version>1</version>
      <scope>runtime</scope>
    </dependency>
  </dependencies>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)

    assert [d.artifact_id for d in parse_pom(path).dependencies] == ["rt"]
    assert [d.artifact_id for d in parse_pom(path, include_optional=True).dependencies] == ["opt", "rt"]


def test_unknown_placeholders_are_preserved(tmp_path: Path) -> None:
    pom = """<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>

  <dependencies>
    <dependency>
      <groupId>org.example</groupId>
      <artifactId>lib</artifactId>
      <version>${lib.version}</version>
    </dependency>
  </dependencies>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)
    model = parse_pom(path)

    assert len(model.dependencies) == 1
    assert model.dependencies[0].gav.version == "${lib.version}"


def test_missing_dependency_version_is_none(tmp_path: Path) -> None:
    pom = """<project>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>
  <dependencies>
    <dependency><groupId>commons</groupId><artifactId>util</artifactId></dependency>
    <dependency><artifactId>no-group</artifactId><version>1</version></dependency>
  </dependencies>
</project>
"""
    model = parse_pom(_write(tmp_path, "pom.xml", pom))

    assert len(model.dependencies) == 1
    assert model.dependencies[0].version is None
    assert model.dependencies[0].compact() == "commons:util"


def test_inherit_group_and_version_from_parent(tmp_path: Path) -> None:
    pom = """<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<project xmlns=\"http://maven.apache.org/POM/4.0.0\">
  <modelVersion>4.0.0</modelVersion>

  <parent>
    <groupId>com.acme</groupId>
    <artifactId>parent</artifactId>
    <version>9.9.9</version>
  </parent>

  <artifactId>child</artifactId>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)
    model = parse_pom(path)

    assert model.compact() == "com.acme:child:9.9.9"
    assert model.parent is not None
    assert model.parent.compact() == "com.acme:parent:9.9.9"


def test_resolve_properties_for_dependency_version(tmp_path: Path) -> None:
    pom = """<?xml version=\"1.0\" encoding=\"UTF-8\"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>

  <properties>
    <lib.version>2.3.4</lib.version>
  </properties>

  <dependencies>
    <dependency>
      <groupId>org.example</groupId>
      <artifactId>lib</artifactId>
      <version>${lib.version}</version>
    </dependency>
    <dependency>
      <groupId>${project.groupId}</groupId>
      <artifactId>sibling</artifactId>
      <version>${this.version}</version>
      <classifier>natives</classifier>
    </dependency>
  </dependencies>
</project>
"""
    path = _write(tmp_path, "pom.xml", pom)
    model = parse_pom(path)

    assert model.dependencies[0].gav.compact() == "org.example:lib:2.3.4"
    assert model.dependencies[1].gav.compact() == "com.acme:sibling:1.0.0:natives"


def test_custom_property_shadows_builtin(tmp_path: Path) -> None:
    pom = """<project>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>
  <properties><project.version>7.7.7</project.version></properties>
</project>
"""
    model = parse_pom(_write(tmp_path, "pom.xml", pom))

    assert model.properties["project.version"] == "7.7.7"
    assert model.properties["pom.artifactId"] == "demo"


def test_dependency_management_and_bom_imports(tmp_path: Path) -> None:
    pom = """<project>
  <groupId>com.acme</groupId>
  <artifactId>demo</artifactId>
  <version>1.0.0</version>
  <properties><netty.version>4.1.100.Final</netty.version></properties>
  <dependencyManagement>
    <dependencies>
      <dependency>
        <groupId>io.netty</groupId><artifactId>netty-buffer</artifactId>
        <version>${netty.version}</version>
      </dependency>
      <dependency>
        <groupId>org.example</groupId><artifactId>platform-bom</artifactId><version>3.0</version>
        <type>pom</type><scope>import</scope>
      </dependency>
    </dependencies>
  </dependencyManagement>
</project>
"""
    model = parse_pom(_write(tmp_path, "pom.xml", pom))

    assert model.dependency_management == {"io.netty:netty-buffer": "4.1.100.Final"}
    assert len(model.boms) == 1
    assert model.boms[0].compact() == "org.example:platform-bom:3.0"
    assert model.boms[0].is_bom is True


def test_parse_pom_from_bytes() -> None:
    model = parse_pom(b"<project><groupId>g</groupId><artifactId>a</artifactId><version>1</version></project>")
    assert model.compact() == "g:a:1"


def test_parse_errors(tmp_path: Path) -> None:
    with pytest.raises(PomNotFoundError):
        parse_pom(tmp_path / "missing.pom")
    with pytest.raises(PomParseError):
        parse_pom(_write(tmp_path, "broken.pom", "<project><artifactId>x</project"))
    with pytest.raises(PomModelError):
        parse_pom(_write(tmp_path, "noartifact.pom", "<project><groupId>g</groupId></project>"))


def test_resolve_placeholders_nested() -> None:
    props = {"a": "${b}", "b": "1.2"}
    assert resolve_placeholders("v${a}-${missing}", props) == "v1.2-${missing}"
    assert has_placeholder("${x}")
    assert not has_placeholder("1.0")
    assert not has_placeholder(None)
