"""Entry point for running golem-agent as a module: python -m golem_agent"""

from golem_agent.cli.commands import app

if __name__ == "__main__":
    app()
