"""Stand-in scripts for framework CLI tools that are missing from a project.

A project scaffolded by hand (or checked out without its framework installed)
often lacks ``artisan`` or ``manage.py``. These minimal replacements let
automation keep going in a degraded mode: the migration sub-command writes a
timestamped migration file, everything else succeeds as a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

ARTISAN_SHIM = r'''#!/usr/bin/env php
<?php
// Stand-in for a missing artisan script, generated by intent.
// Only make:migration does real work; every other command is a no-op.

function intent_table_name($name) {
    foreach (['/^create_(\w+)_table$/', '/^\w+_to_(\w+)_table$/', '/^(\w+)_table$/'] as $pattern) {
        if (preg_match($pattern, $name, $m)) {
            return $m[1];
        }
    }
    return $name;
}

$command = $argv[1] ?? '';

if ($command === 'make:migration') {
    $name = $argv[2] ?? 'migration';
    $table = intent_table_name($name);
    $dir = __DIR__ . '/database/migrations';
    if (!is_dir($dir)) {
        mkdir($dir, 0777, true);
    }
    $file = $dir . '/' . date('Y_m_d_His') . '_' . $name . '.php';
    $stub = <<<'STUB'
<?php

use Illuminate\Database\Migrations\Migration;
use Illuminate\Database\Schema\Blueprint;
use Illuminate\Support\Facades\Schema;

return new class extends Migration
{
    public function up(): void
    {
        Schema::create('__TABLE__', function (Blueprint $table) {
            $table->id();
            $table->timestamps();
        });
    }

    public function down(): void
    {
        Schema::dropIfExists('__TABLE__');
    }
};
STUB;
    file_put_contents($file, str_replace('__TABLE__', $table, $stub));
    echo "   Created Migration: " . basename($file) . PHP_EOL;
    exit(0);
}

echo "   [stand-in artisan] '" . $command . "' is not available; skipping." . PHP_EOL;
exit(0);
'''

MANAGE_PY_SHIM = r'''#!/usr/bin/env python3
"""Stand-in for a missing manage.py, generated by intent.

Only the migration commands do real work; every other command is a no-op.
"""
import os
import re
import sys
from datetime import datetime


def table_name(name):
    for pattern in (r"^create_(\w+)_table$", r"^\w+_to_(\w+)_table$", r"^(\w+)_table$"):
        match = re.match(pattern, name)
        if match:
            return match.group(1)
    return name


def make_migration(name):
    here = os.path.dirname(os.path.abspath(__file__))
    directory = os.path.join(here, "migrations")
    os.makedirs(directory, exist_ok=True)
    stamp = datetime.now().strftime("%Y_%m_%d_%H%M%S")
    path = os.path.join(directory, stamp + "_" + name + ".py")
    with open(path, "w") as f:
        f.write("# Migration: %s\nTABLE = %r\n" % (name, table_name(name)))
    print("   Created migration: " + os.path.basename(path))


def main(argv):
    command = argv[1] if len(argv) > 1 else ""
    if command in ("makemigrations", "make:migration"):
        args = argv[2:]
        name = None
        for flag in ("--name", "-n"):
            if flag in args and args.index(flag) + 1 < len(args):
                name = args[args.index(flag) + 1]
        if name is None:
            positional = [a for a in args if not a.startswith("-")]
            name = positional[0] if positional else "auto"
        make_migration(name)
        return 0
    print("   [stand-in manage.py] '%s' is not available; skipping." % command)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
'''


@dataclass(frozen=True)
class ToolSpec:
    """A framework CLI script and the stand-in written when it is missing."""

    name: str
    script: str
    shim: str


KNOWN_TOOLS: Tuple[ToolSpec, ...] = (
    ToolSpec(name="artisan", script="artisan", shim=ARTISAN_SHIM),
    ToolSpec(name="manage.py", script="manage.py", shim=MANAGE_PY_SHIM),
)

