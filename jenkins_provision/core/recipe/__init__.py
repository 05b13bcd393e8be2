"""
Recipe steps — one module per concern, run in order by the engine.

    platform   resolve the OS profile, install prerequisites
    account    user, home, .ssh, keypair, public key
    plugins    stage .hpi files, restart when they changed
    install    install trigger and stop/drain/key/install/start cascade
    drain      wait for the HTTP port to be released
    service    pid-file based status, stop, start
    proxy      nginx reverse proxy site
    firewall   iptables port rule
"""
