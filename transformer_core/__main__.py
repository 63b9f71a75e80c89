from transformer_core.cli import main

raise SystemExit(main())
