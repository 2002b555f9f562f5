from aider_mcp.cli import main

raise SystemExit(main())
