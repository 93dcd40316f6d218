"""Deterministic skeleton plugin used when model output cannot be recovered."""

import json
import re

from plugin_bot.models import PluginFile, PluginProject

DEFAULT_TARGET_VERSION = "1.20.1"
DEFAULT_DEPENDENCIES = ("org.spigotmc:spigot-api:1.20.1-R0.1-SNAPSHOT",)
DEFAULT_BUILD_INSTRUCTIONS = "mvn clean compile package"
PLUGIN_DESCRIPTOR_PATH = "src/main/resources/plugin.yml"
BUILD_MANIFEST_PATH = "pom.xml"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9_]")

_MAIN_CLASS_TEMPLATE = """\
package com.example.{package};

import org.bukkit.command.Command;
import org.bukkit.command.CommandSender;
import org.bukkit.entity.Player;
import org.bukkit.plugin.java.JavaPlugin;

public class {class_name} extends JavaPlugin {{

    @Override
    public void onEnable() {{
        getLogger().info("{name} plugin has been enabled!");
    }}

    @Override
    public void onDisable() {{
        getLogger().info("{name} plugin has been disabled!");
    }}

    @Override
    public boolean onCommand(CommandSender sender, Command command, String label, String[] args) {{
        if (command.getName().equalsIgnoreCase("{command}")) {{
            if (sender instanceof Player) {{
                Player player = (Player) sender;
                player.sendMessage("{name} plugin is working!");
                return true;
            }}
            sender.sendMessage("This command can only be used by players.");
        }}
        return false;
    }}
}}
"""

_PLUGIN_YML_TEMPLATE = """\
name: {name}
version: 1.0.0
main: com.example.{package}.{class_name}
api-version: "1.20"
author: AI Generator
description: {description}

commands:
  {command}:
    description: Main {name} command
    usage: /{command}
    permission: {command}.use

permissions:
  {command}.use:
    description: Allows using {name}
    default: true
"""

_POM_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>{package}</artifactId>
    <version>1.0.0</version>
    <packaging>jar</packaging>
    <name>{name}</name>

    <properties>
        <maven.compiler.source>17</maven.compiler.source>
        <maven.compiler.target>17</maven.compiler.target>
        <project.build.sourceEncoding>UTF-8</project.build.sourceEncoding>
    </properties>

    <repositories>
        <repository>
            <id>spigot-repo</id>
            <url>https://hub.spigotmc.org/nexus/content/repositories/snapshots/</url>
        </repository>
    </repositories>

    <dependencies>
        <dependency>
            <groupId>org.spigotmc</groupId>
            <artifactId>spigot-api</artifactId>
            <version>1.20.1-R0.1-SNAPSHOT</version>
            <scope>provided</scope>
        </dependency>
    </dependencies>

    <build>
        <plugins>
            <plugin>
                <groupId>org.apache.maven.plugins</groupId>
                <artifactId>maven-compiler-plugin</artifactId>
                <version>3.11.0</version>
                <configuration>
                    <source>17</source>
                    <target>17</target>
                </configuration>
            </plugin>
        </plugins>
    </build>
</project>
"""

_README_TEMPLATE = """\
# {name}

## Description
{requirements}

## Build Instructions
    mvn clean compile package

## Installation
1. Build the plugin using Maven
2. Copy the generated JAR file to your server's plugins folder
3. Restart your server

## Usage
Use the command `/{command}` to test the plugin.
"""


def package_name_for(plugin_name: str) -> str:
    """Lowercase the name and drop everything but letters and digits."""
    return _NON_ALNUM_RE.sub("", plugin_name.lower()) or "plugin"


def main_class_name_for(plugin_name: str) -> str:
    identifier = _NON_IDENTIFIER_RE.sub("", plugin_name) or "Generated"
    return identifier[0].upper() + identifier[1:] + "Plugin"


def main_class_path_for(plugin_name: str) -> str:
    return (
        f"src/main/java/com/example/{package_name_for(plugin_name)}/"
        f"{main_class_name_for(plugin_name)}.java"
    )


def build_fallback_project(plugin_name: str, requirements: str) -> PluginProject:
    """Build the minimal compilable skeleton for a request.

    The result depends only on the arguments: the same request always
    yields the same skeleton.

    Args:
        plugin_name: Requested plugin name.
        requirements: Free-text requirements, embedded in descriptors only.

    Returns:
        Schema-valid PluginProject with main class, plugin.yml, pom.xml and README.
    """
    package = package_name_for(plugin_name)
    class_name = main_class_name_for(plugin_name)
    command = plugin_name.lower()
    one_line_requirements = " ".join(requirements.split()) or plugin_name
    values = {
        "name": plugin_name,
        "package": package,
        "class_name": class_name,
        "command": command,
        # JSON string literals are valid double-quoted YAML scalars.
        "description": json.dumps(one_line_requirements),
        "requirements": requirements.strip() or plugin_name,
    }

    files = [
        PluginFile(
            path=main_class_path_for(plugin_name),
            content=_MAIN_CLASS_TEMPLATE.format(**values),
            type="java",
        ),
        PluginFile(
            path=PLUGIN_DESCRIPTOR_PATH,
            content=_PLUGIN_YML_TEMPLATE.format(**values),
            type="yaml",
        ),
        PluginFile(path=BUILD_MANIFEST_PATH, content=_POM_TEMPLATE.format(**values), type="xml"),
        PluginFile(path="README.md", content=_README_TEMPLATE.format(**values), type="md"),
    ]
    return PluginProject(
        name=plugin_name,
        target_version=DEFAULT_TARGET_VERSION,
        files=files,
        dependencies=list(DEFAULT_DEPENDENCIES),
        build_instructions=DEFAULT_BUILD_INSTRUCTIONS,
    )


def _required_file_kind(path: str) -> str | None:
    if path.endswith("plugin.yml"):
        return "plugin.yml"
    if path.endswith(".java"):
        return ".java"
    if path.endswith("pom.xml"):
        return "pom.xml"
    return None


def ensure_required_files(
    project: PluginProject, plugin_name: str, requirements: str
) -> list[str]:
    """Add skeleton descriptor, main class or build manifest when missing.

    Returns:
        Paths of the files that were added, in skeleton order.
    """
    present = {_required_file_kind(f.path) for f in project.files}
    missing = {"plugin.yml", ".java", "pom.xml"} - present
    if not missing:
        return []

    added: list[str] = []
    for skeleton_file in build_fallback_project(plugin_name, requirements).files:
        if _required_file_kind(skeleton_file.path) in missing:
            project.files.append(skeleton_file)
            added.append(skeleton_file.path)
    return added
