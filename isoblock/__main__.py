# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from isoblock.cli import main

raise SystemExit(main())
