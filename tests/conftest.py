import json
from pathlib import Path

import pytest

from plugin_bot.models import PluginFile, PluginProject

MAIN_CLASS = """\
package com.example.greeter;

import org.bukkit.plugin.java.JavaPlugin;

public class GreeterPlugin extends JavaPlugin {
    @Override
    public void onEnable() {
        getLogger().info("Greeter enabled");
    }
}
"""

PLUGIN_YML = """\
name: Greeter
version: 1.0.0
main: com.example.greeter.GreeterPlugin
api-version: "1.20"
"""

POM_XML = """\
<project>
    <modelVersion>4.0.0</modelVersion>
    <dependencies>
        <dependency>
            <groupId>org.spigotmc</groupId>
            <artifactId>spigot-api</artifactId>
            <version>1.20.4-R0.1-SNAPSHOT</version>
        </dependency>
    </dependencies>
</project>
"""


@pytest.fixture
def sample_project() -> PluginProject:
    return PluginProject(
        name="Greeter",
        target_version="1.20.1",
        files=[
            PluginFile(
                path="src/main/java/com/example/greeter/GreeterPlugin.java",
                content=MAIN_CLASS,
                type="java",
            ),
            PluginFile(path="src/main/resources/plugin.yml", content=PLUGIN_YML, type="yaml"),
            PluginFile(path="pom.xml", content=POM_XML, type="xml"),
        ],
        dependencies=["org.spigotmc:spigot-api:1.20.1-R0.1-SNAPSHOT"],
        build_instructions="mvn clean package",
    )


@pytest.fixture
def sample_project_json(sample_project) -> str:
    return json.dumps(sample_project.to_wire())


@pytest.fixture
def project_dir(tmp_path, sample_project) -> Path:
    """A project tree on disk matching ``sample_project``."""
    root = tmp_path / "generated" / "user-1" / "Greeter"
    for plugin_file in sample_project.files:
        target = root / plugin_file.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(plugin_file.content, encoding="utf-8")
    return root

