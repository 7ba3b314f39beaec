# notarytool

Tools for the keys, certificates and signatures used with container images
kept in OCI registries.

The package provides:

- a local configuration of signing keys and verification certificates, with
  the `notarytool` command to manage it,
- a signature cache laid out by manifest digest,
- a registry client that looks up, downloads, uploads and links signatures
  as artifacts referring to an image manifest,
- a generator of Docker schema 2 manifests from the output of `docker save`,
  with the `docker-generate` command.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Managing signing keys

Register a key together with its certificate, optionally marking it as the
default key:

```
notarytool key add --name mykey --default ./mykey.key ./mykey.crt
notarytool key list
notarytool key update --default mykey
notarytool key remove mykey
```

`key add` checks that the PEM private key matches the first certificate in
the PEM certificate file before storing both absolute paths. `key list`
marks the default key with `*`. Removing the default key clears the default
and reports it as `unmarked as default`. `set` is accepted for `update`.

## Managing verification certificates

```
notarytool certificate add --name mycert ./mycert.crt
notarytool certificate list
notarytool certificate remove mycert
```

`certificate add` checks that the file holds PEM certificates. `cert` is
accepted as a short form of `certificate`, and `ls` / `rm` as short forms of
`list` / `remove`, for keys too. When no name is given, the file name without
its extension is used.

`notarytool --version` prints the version. Errors are printed to standard
error and the command exits with status 1.

The configuration is stored as `config.json` in a `notation` directory under
the user's configuration directory; cached signatures live in
`notation/signature` under the user's cache directory.

## Generating a Docker manifest

`docker-generate` builds the schema 2 manifest of a local image from the
tarball written by `docker save`:

```
docker-generate generate manifest example.com/app:v1
docker save example.com/app:v1 | docker-generate generate manifest -o manifest.json
```

With a reference it runs `docker save` itself; without one it reads the
tarball from standard input. The manifest is written to standard output
unless `--output` / `-o` names a file. The archive must hold exactly one
image. The hidden `docker-cli-plugin-metadata` command prints the plugin
metadata as JSON, so the program can be installed as a Docker CLI plugin.

## Using the library

```python
from notarytool.descriptor import Digest, descriptor_from_bytes
from notarytool.registry.reference import parse_reference

ref = parse_reference("example.com/library/app:v1")
print(ref.host(), ref.repository, ref.reference_or_default())

desc = descriptor_from_bytes(b"payload")
print(desc.digest, desc.size)

digest = Digest.parse(str(desc.digest))
```

- `notarytool.registry.client.RegistryClient` hands out `RepositoryClient`
  objects, whose `get_manifest_descriptor`, `lookup`, `get`, `put` and `link`
  talk to a registry over HTTP. `get_manifest_descriptor(transport, ref,
  plain_http)` resolves a `Reference` directly.
- `notarytool.registry.auth.new_auth_transport(base, username, password)`
  wraps a transport so that basic and bearer-token challenges are answered.
- `notarytool.cache.pull_signature` downloads a signature into the cache
  unless it is already there; `signature_digests` lists the cached
  signatures of a manifest.
- `notarytool.config.file` loads and saves the configuration
  (`load`, `load_or_default`, `ConfigFile.save`) and resolves keys and
  certificates by name (`resolve_key_path`, `resolve_certificate_path`).
- `notarytool.docker.schema2.generate_schema2_from_docker_save` returns a
  `Schema2Manifest` whose `payload()` gives the manifest bytes.

## What the package does not do

The package does not sign or verify anything: there are no commands to sign
an image, verify signatures, push or pull signatures, list remote
signatures or manage the signature cache from the command line, and no
Docker plugin for signing images. Those tasks are left to the library
functions above or to other tools.